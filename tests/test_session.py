"""
Tests for AnalysisSession (core/session.py).
"""

import asyncio
import json

from branchboard.core.constants import ROOT_NODE_ID, NodeType
from branchboard.core.graph import GraphEditor
from branchboard.core.ingest import IngestFile
from branchboard.core.session import AnalysisSession, IngestStatus
from branchboard.core.status import StatusCategory, StatusLevel


def csv_file(name: str, text: str) -> IngestFile:
    return IngestFile(name=name, content=text.encode("utf-8"))


ORDERS = "id,region,amount\n1,West,10\n2,East,20\n3,West,5\n"


def make_session(tmp_config, status, id_factory) -> AnalysisSession:
    return AnalysisSession(config=tmp_config, status=status,
                           editor=GraphEditor(id_factory=id_factory))


class TestIngestion:
    """Tests for ingestion outcomes."""

    def test_success_selects_default_table_silently(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        outcome = session.ingest([csv_file("orders.csv", ORDERS)])

        assert outcome.status == IngestStatus.SUCCESS
        assert session.tables.order == ["orders"]
        assert session.raw_data_name == "orders.csv"
        assert session.editor.get(ROOT_NODE_ID).params["table"] == "orders"
        assert len(session.editor.history) == 1
        assert status.get_history()[-1].level == StatusLevel.SUCCESS

    def test_failure_keeps_tables(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        tables = session.tables

        outcome = session.ingest([IngestFile(name="notes.txt", content=b"hello")])

        assert outcome.status == IngestStatus.UNSUPPORTED
        assert session.tables is tables
        assert "Unsupported" in session.load_error
        assert status.get_history()[-1].level == StatusLevel.ERROR

    def test_parse_failure(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        outcome = session.ingest([csv_file("empty.csv", "a,b\n")])
        assert outcome.status == IngestStatus.PARSE_ERROR
        assert session.tables.is_empty

    def test_undecodable_csv_reports_parse_error(self, tmp_config, status, id_factory):
        """A Latin-1 file fails cleanly and leaves the loaded tables alone."""
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        tables = session.tables

        latin = IngestFile(name="cafes.csv", content="name\ncaf\u00e9\n".encode("latin-1"))
        outcome = session.ingest([latin])

        assert outcome.status == IngestStatus.PARSE_ERROR
        assert session.is_loading is False
        assert session.tables is tables
        assert "decode" in session.load_error

    def test_listener_receives_ingest_error(self, tmp_config, status, id_factory):
        """Listeners see the error event for a failed ingestion."""
        events = []
        status.add_listener(events.append)
        session = make_session(tmp_config, status, id_factory)
        session.ingest([IngestFile(name="notes.txt", content=b"hello")])

        assert [e.level for e in events] == [StatusLevel.ERROR]
        assert events[0].category == StatusCategory.INGEST
        assert "Unsupported" in events[0].message

    def test_stale_result_discarded(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        first = session.begin_ingest()
        second = session.begin_ingest()
        stale = session.complete_ingest(session._parse(first, [csv_file("old.csv", "a\n1\n")]))
        fresh = session.complete_ingest(session._parse(second, [csv_file("new.csv", "a\n2\n")]))
        assert stale.status == IngestStatus.STALE
        assert fresh.ok
        assert session.tables.order == ["new"]

    def test_async_ingest(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        outcome = asyncio.run(session.ingest_async([csv_file("orders.csv", ORDERS)]))
        assert outcome.ok
        assert session.view(ROOT_NODE_ID).row_count == 3

    def test_clear_data_is_undoable(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        session.clear_data()
        assert session.tables.is_empty
        assert session.editor.get(ROOT_NODE_ID).params["table"] is None
        session.undo()
        assert session.editor.get(ROOT_NODE_ID).params["table"] == "orders"


class TestEditing:
    """Tests for selection and evaluation through the session."""

    def test_results_follow_edits(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        f = session.add_node(NodeType.FILTER, ROOT_NODE_ID)
        assert session.selected_node_id == f
        assert session.view(f).row_count == 3

        session.update_node(f, {"field": "region", "operator": "equals", "value": "West"})
        assert session.view(f).row_count == 2

        session.undo()
        assert session.view(f).row_count == 3

    def test_results_cached_until_change(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        first = session.results()
        assert session.results() is first
        session.add_node("COMPONENT", ROOT_NODE_ID)
        assert session.results() is not first

    def test_select_expanded_node_keeps_results(self, tmp_config, status, id_factory):
        """Selecting an already expanded node does not force a re-evaluation."""
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        first = session.results()
        session.select(ROOT_NODE_ID)
        assert session.results() is first

    def test_view_defaults_follow_config(self, tmp_config, status, id_factory):
        """Configured preview size and top values reach the result views."""
        tmp_config.set("top_values", 2)
        tmp_config.set("sample_size", 2)
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS + "4,North,1\n5,South,2\n")])
        view = session.view(ROOT_NODE_ID)

        assert view.row_count == 5
        assert len(view.get_rows()) == 2
        assert len(view.get_column_stats("region").top_values) == 2

    def test_remove_selected_resets_to_root(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        parent = session.add_node("FILTER", ROOT_NODE_ID)
        session.add_node("COMPONENT", parent)
        session.remove_node(parent)
        assert session.selected_node_id == ROOT_NODE_ID

    def test_remove_other_keeps_selection(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        a = session.add_node("FILTER", ROOT_NODE_ID)
        b = session.add_node("FILTER", ROOT_NODE_ID)
        session.select(a)
        session.remove_node(b)
        assert session.selected_node_id == a

    def test_undo_past_selected_node(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.add_node("FILTER", ROOT_NODE_ID)
        session.undo()
        assert session.selected_node_id == ROOT_NODE_ID

    def test_rename(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        node_id = session.add_node("FILTER", ROOT_NODE_ID)
        session.rename_node(node_id, title="West only")
        assert session.editor.get(node_id).title == "West only"


class TestState:
    """Tests for exporting and restoring a session."""

    def test_round_trip(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        f = session.add_node("FILTER", ROOT_NODE_ID)
        session.update_node(f, {"field": "amount", "operator": "gte", "value": "10"})
        state = json.loads(json.dumps(session.export_state()))

        restored = make_session(tmp_config, status, id_factory)
        restored.open_exploration(state)

        assert len(restored.editor.history) == 1
        assert restored.view(f).row_count == 2
        assert restored.raw_data_name == "orders.csv"

    def test_new_exploration(self, tmp_config, status, id_factory):
        session = make_session(tmp_config, status, id_factory)
        session.ingest([csv_file("orders.csv", ORDERS)])
        session.add_node("FILTER", ROOT_NODE_ID)
        session.new_exploration()
        assert len(session.nodes) == 1
        assert session.tables.is_empty
        assert session.view(ROOT_NODE_ID).row_count == 0
