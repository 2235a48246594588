# tests/test_kanban.py
from __future__ import annotations

from unittest.mock import MagicMock

from gabinete.errors import RowStoreError
from gabinete.viewstate.kanban import DISABLED, FAILED, MOVED, NOOP, KanbanBoard


def _rows():
    return [
        {"id": "t1", "status": "new", "title": "Buraco"},
        {"id": "t2", "status": "resolved", "title": "Poste"},
        {"id": "t3", "status": "in_progress", "title": "Lixo"},
        {"id": "t4", "status": "closed", "title": "Fora do quadro"},
    ]


def _board(role: str = "aide"):
    gateway = MagicMock()
    gateway.list_tickets.return_value = _rows()
    board = KanbanBoard(gateway, role)
    board.load()
    return board, gateway


def _where(board, ticket_id):
    return [col for col, items in board.columns.items() for t in items if t["id"] == ticket_id]


def test_load_groups_into_the_four_columns():
    board, _ = _board()
    assert list(board.columns) == ["new", "under_review", "in_progress", "resolved"]
    assert _where(board, "t1") == ["new"]
    assert _where(board, "t4") == []


def test_drop_on_column_fires_one_status_update():
    board, gateway = _board()

    result = board.move("t1", column="in_progress")

    assert result.outcome == MOVED
    gateway.update_status.assert_called_once_with("t1", "in_progress")
    assert _where(board, "t1") == ["in_progress"]
    assert board.columns["in_progress"][-1]["status"] == "in_progress"


def test_drop_on_ticket_targets_that_tickets_column():
    board, gateway = _board()

    result = board.move("t1", over_ticket_id="t2")

    assert result.outcome == MOVED
    assert result.to_status == "resolved"
    gateway.update_status.assert_called_once_with("t1", "resolved")
    assert _where(board, "t1") == ["resolved"]


def test_drop_on_own_column_or_nowhere_is_noop():
    board, gateway = _board()

    assert board.move("t1", column="new").outcome == NOOP
    assert board.move("t1", over_ticket_id="t1").outcome == NOOP

    assert board.drag_start("t1")
    assert board.drag_end().outcome == NOOP

    assert board.move("t1", column="closed").outcome == NOOP
    gateway.update_status.assert_not_called()
    assert _where(board, "t1") == ["new"]


def test_failed_update_reloads_everything():
    board, gateway = _board()
    gateway.update_status.side_effect = RowStoreError("42501", "new row violates row-level security policy")

    result = board.move("t1", column="resolved")

    assert result.outcome == FAILED
    # full reconciliation rather than a targeted rollback
    assert gateway.list_tickets.call_count == 2
    assert _where(board, "t1") == ["new"]
    assert board.error == "You do not have permission to perform this action."


def test_server_row_replaces_local_copy_after_success():
    board, gateway = _board()
    gateway.update_status.return_value = {"id": "t3", "status": "resolved", "title": "Lixo", "assignee_id": "s1"}

    board.move("t3", column="resolved")

    moved = board.columns["resolved"][-1]
    assert moved["assignee_id"] == "s1"


def test_ambiguous_drop_target_last_column_wins():
    gateway = MagicMock()
    gateway.list_tickets.return_value = _rows() + [{"id": "t9", "status": "under_review", "title": "dup"}]
    board = KanbanBoard(gateway, "aide")
    board.load()
    # t9 caught between columns: visible in under_review and resolved at once
    board.columns["resolved"].append({"id": "t9", "status": "resolved", "title": "dup"})

    assert board.drag_start("t1")
    assert board.drag_over(ticket_id="t9") == "resolved"
    assert board.drag_end().to_status == "resolved"


def test_citizens_cannot_drag_but_can_open_details():
    board, gateway = _board(role="citizen")

    assert board.can_drag is False
    assert board.drag_start("t1") is False
    assert board.move("t1", column="resolved").outcome == DISABLED
    gateway.update_status.assert_not_called()

    detail = board.open_detail("t1")
    assert detail is not None
    assert detail.state["title"] == "Buraco"


def test_detail_save_rebuilds_board():
    board, gateway = _board()
    detail = board.open_detail("t3")

    detail.change_status("resolved")

    gateway.update_status.assert_called_once_with("t3", "resolved")
    assert gateway.list_tickets.call_count == 2
