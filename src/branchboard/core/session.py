"""One analysis session: tables, graph history, selection and ingestion.

The session is the single owner of the table set and the history. Results
are recomputed wholesale whenever either changes; views from an earlier
pass are never reused.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional
import asyncio
import logging

from .config import ConfigManager
from .constants import ROOT_NODE_ID, ComponentType
from .graph import GraphEditor, create_initial_nodes
from .ingest import IngestError, IngestFile, UnsupportedFormatError, build_table_set
from .nodes.base import snapshot_from_list, snapshot_to_list
from .nodes.pipeline import NodeResult, TableSet, ViewSettings, evaluate_tree
from .nodes.tree import find_node, find_root
from .result_view import ResultView
from .status import StatusManager, get_status_manager

logger = logging.getLogger(__name__)


class IngestStatus(Enum):
    """How an ingestion request ended."""
    SUCCESS = "success"
    PARSE_ERROR = "parse_error"
    UNSUPPORTED = "unsupported"
    STALE = "stale"  # Superseded by a newer request; result discarded


@dataclass
class IngestOutcome:
    status: IngestStatus
    request_id: int
    tables: Optional[TableSet] = None
    error: Optional[str] = None
    file_names: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == IngestStatus.SUCCESS


class AnalysisSession:
    """Ties the graph editor, the table set and evaluation together for a UI."""

    def __init__(self, config: Optional[ConfigManager] = None,
                 status: Optional[StatusManager] = None,
                 editor: Optional[GraphEditor] = None):
        self.config = config or ConfigManager()
        self.status = status or get_status_manager()
        self.editor = editor or GraphEditor()
        self.tables = TableSet()
        self.selected_node_id: str = self._root_id()
        self.raw_data_name: Optional[str] = None
        self.load_error: Optional[str] = None
        self.is_loading = False

        self._latest_request = 0
        self._results: Optional[Dict[str, NodeResult]] = None
        self._results_key = None

    # ==========================================================================
    # Evaluation
    # ==========================================================================

    @property
    def nodes(self) -> tuple:
        return self.editor.nodes

    def _root_id(self) -> str:
        root = find_root(self.editor.nodes)
        return root.id if root else ROOT_NODE_ID

    def results(self) -> Dict[str, NodeResult]:
        """Per-node results for the current snapshot and table set."""
        nodes, tables = self.nodes, self.tables
        stale = (self._results_key is None
                 or self._results_key[0] is not nodes
                 or self._results_key[1] is not tables)
        if self._results is None or stale:
            self._results = evaluate_tree(
                nodes,
                tables,
                schema_sample_size=self.config.schema_sample_size,
                view_settings=ViewSettings(
                    sort_check_size=self.config.sort_check_size,
                    sample_size=self.config.sample_size,
                    chart_sample_size=self.config.chart_sample_size,
                    top_values=self.config.top_values,
                ),
            )
            self._results_key = (nodes, tables)
        return self._results

    def result(self, node_id: str) -> Optional[NodeResult]:
        return self.results().get(node_id)

    def view(self, node_id: str) -> Optional[ResultView]:
        result = self.result(node_id)
        return result.view if result is not None else None

    # ==========================================================================
    # Graph edits (selection follows the edit)
    # ==========================================================================

    def select(self, node_id: str) -> None:
        self.editor.expand(node_id)
        self.selected_node_id = node_id

    def add_node(self, node_type, parent_id: str, subtype=ComponentType.TABLE) -> str:
        new_id = self.editor.add(node_type, parent_id, subtype)
        self.selected_node_id = new_id
        return new_id

    def insert_node(self, node_type, parent_id: str, subtype=ComponentType.TABLE) -> str:
        new_id = self.editor.insert(node_type, parent_id, subtype)
        self.selected_node_id = new_id
        return new_id

    def remove_node(self, node_id: str) -> None:
        removed = self.editor.remove(node_id)
        if self.selected_node_id in removed:
            self.selected_node_id = self._root_id()

    def update_node(self, node_id: str, params: Dict) -> None:
        self.editor.apply_user_edit(node_id, params)

    def rename_node(self, node_id: str, **updates) -> None:
        self.editor.apply_meta_edit(node_id, updates)

    def _fix_selection(self) -> None:
        if find_node(self.nodes, self.selected_node_id) is None:
            self.selected_node_id = self._root_id()

    def undo(self) -> bool:
        changed = self.editor.undo()
        self._fix_selection()
        return changed

    def redo(self) -> bool:
        changed = self.editor.redo()
        self._fix_selection()
        return changed

    # ==========================================================================
    # Ingestion
    # ==========================================================================

    def begin_ingest(self) -> int:
        """Register a new request; any request started earlier becomes stale."""
        self._latest_request += 1
        self.load_error = None
        self.is_loading = True
        return self._latest_request

    def _parse(self, request_id: int, files: List[IngestFile]) -> IngestOutcome:
        names = [f.name for f in files]
        try:
            tables = build_table_set(files)
        except UnsupportedFormatError as e:
            return IngestOutcome(IngestStatus.UNSUPPORTED, request_id, error=str(e), file_names=names)
        except IngestError as e:
            return IngestOutcome(IngestStatus.PARSE_ERROR, request_id, error=str(e), file_names=names)
        return IngestOutcome(IngestStatus.SUCCESS, request_id, tables=tables, file_names=names)

    def complete_ingest(self, outcome: IngestOutcome) -> IngestOutcome:
        """Apply a finished request unless a newer one has started since."""
        if outcome.request_id != self._latest_request:
            logger.info(f"Discarding stale ingestion result #{outcome.request_id}")
            return IngestOutcome(IngestStatus.STALE, outcome.request_id, file_names=outcome.file_names)

        self.is_loading = False
        if not outcome.ok:
            self.load_error = outcome.error
            logger.error(f"Ingestion failed: {outcome.error}")
            self.status.error("ingest", outcome.error or "Ingestion failed")
            return outcome

        self.tables = outcome.tables
        names = outcome.file_names
        self.raw_data_name = names[0] if len(names) == 1 else f"{len(names)} files"
        self.status.success(
            "ingest",
            f"Loaded {len(self.tables.order)} table(s), {self.tables.row_count} rows",
        )
        self._select_default_table()
        return outcome

    def _select_default_table(self) -> None:
        root_id = self._root_id()
        root = self.editor.get(root_id)
        default = self.tables.default_table
        if default and not root.params.get("table"):
            self.editor.apply_system_correction(root_id, {**root.params, "table": default})

    def ingest(self, files: Iterable[IngestFile]) -> IngestOutcome:
        """Parse ``files`` and, on success, make them the session's table set."""
        files = list(files)
        request_id = self.begin_ingest()
        return self.complete_ingest(self._parse(request_id, files))

    async def ingest_async(self, files: Iterable[IngestFile]) -> IngestOutcome:
        """Like :meth:`ingest`, parsing off the event loop.

        If another ingestion starts while this one is parsing, this result is
        reported as ``STALE`` and not applied.
        """
        files = list(files)
        request_id = self.begin_ingest()
        outcome = await asyncio.to_thread(self._parse, request_id, files)
        return self.complete_ingest(outcome)

    def clear_data(self) -> None:
        """Drop the ingested tables and unset the source table (undoable)."""
        self._latest_request += 1
        self.is_loading = False
        self.tables = TableSet()
        self.raw_data_name = None
        self.load_error = None
        root_id = self._root_id()
        root = self.editor.get(root_id)
        self.editor.apply_user_edit(root_id, {**root.params, "table": None})

    # ==========================================================================
    # Whole-session state
    # ==========================================================================

    def new_exploration(self) -> None:
        self._latest_request += 1
        self.editor.reset(create_initial_nodes())
        self.tables = TableSet()
        self.raw_data_name = None
        self.load_error = None
        self.is_loading = False
        self.selected_node_id = self._root_id()

    def open_exploration(self, state: Dict) -> None:
        """Restore a state produced by :meth:`export_state`; history restarts."""
        nodes = snapshot_from_list(state.get("nodes") or []) or create_initial_nodes()
        self._latest_request += 1
        self.editor.reset(nodes)
        self.tables = TableSet.from_dict(state.get("dataModel"))
        self.raw_data_name = state.get("rawDataName")
        self.load_error = None
        self.is_loading = False
        self.selected_node_id = self._root_id()

    def export_state(self) -> Dict:
        """JSON-compatible state an external store can persist."""
        return {
            "nodes": snapshot_to_list(self.nodes),
            "dataModel": self.tables.to_dict(),
            "rawDataName": self.raw_data_name,
        }
