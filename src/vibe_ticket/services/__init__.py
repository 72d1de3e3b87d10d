"""Shared service layer for CLI and MCP."""

from .context import ProjectContext, init_project, open_project, show_config, get_config_value, set_config_value
from .tickets import (
    format_ticket,
    format_ticket_summary,
    resolve_ticket_ref,
    create_ticket,
    list_tickets,
    get_ticket,
    get_active_ticket,
    edit_ticket,
    start_ticket,
    review_ticket,
    block_ticket,
    request_changes,
    handoff_ticket,
    approve_ticket,
    finish_ticket,
    close_ticket,
    reopen_ticket,
    archive_ticket,
    delete_ticket,
    search_tickets,
    check_project,
    board,
    bulk_update,
    bulk_close,
    bulk_tag,
    bulk_archive,
)
from .tasks import add_task, complete_task, uncomplete_task, list_tasks, remove_task
from .time import log_time, start_timer, stop_timer, timer_status, time_report
from .specs import (
    init_spec,
    list_specs,
    show_spec,
    spec_status,
    phase_document,
    approve_phase,
    update_spec,
    activate_spec,
    delete_spec,
    export_spec_tickets,
)
from .customization import (
    create_alias,
    list_aliases,
    delete_alias,
    expand_alias,
    create_filter,
    list_filters,
    show_filter,
    delete_filter,
    apply_filter,
    create_hook,
    list_hooks,
    delete_hook,
    set_hook_enabled,
    run_hook_test,
)
from .worktrees import list_worktrees, remove_worktree, prune_worktrees
from .data import export_data, import_data

__all__ = [
    "ProjectContext",
    "init_project",
    "open_project",
    "show_config",
    "get_config_value",
    "set_config_value",
    "format_ticket",
    "format_ticket_summary",
    "resolve_ticket_ref",
    "create_ticket",
    "list_tickets",
    "get_ticket",
    "get_active_ticket",
    "edit_ticket",
    "start_ticket",
    "review_ticket",
    "block_ticket",
    "request_changes",
    "handoff_ticket",
    "approve_ticket",
    "finish_ticket",
    "close_ticket",
    "reopen_ticket",
    "archive_ticket",
    "delete_ticket",
    "search_tickets",
    "check_project",
    "board",
    "bulk_update",
    "bulk_close",
    "bulk_tag",
    "bulk_archive",
    "add_task",
    "complete_task",
    "uncomplete_task",
    "list_tasks",
    "remove_task",
    "log_time",
    "start_timer",
    "stop_timer",
    "timer_status",
    "time_report",
    "init_spec",
    "list_specs",
    "show_spec",
    "spec_status",
    "phase_document",
    "approve_phase",
    "update_spec",
    "activate_spec",
    "delete_spec",
    "export_spec_tickets",
    "create_alias",
    "list_aliases",
    "delete_alias",
    "expand_alias",
    "create_filter",
    "list_filters",
    "show_filter",
    "delete_filter",
    "apply_filter",
    "create_hook",
    "list_hooks",
    "delete_hook",
    "set_hook_enabled",
    "run_hook_test",
    "list_worktrees",
    "remove_worktree",
    "prune_worktrees",
    "export_data",
    "import_data",
]
