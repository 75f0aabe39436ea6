"""Data model for HubSpot v4 automation flows.

A flow is a directed graph of actions. Actions link forward either through a
single ``connection`` or through a set of branches. The graph may contain
cycles (two branches converging on the same action) and may reference action
ids that are not part of the flow; neither is treated as invalid here.
"""

from typing import Any, Self

from pydantic import Field, model_validator

from crm_backbone.models.base import HubSpotModel

# action.type values that mark a branch container
BRANCH_TYPES = {"LIST_BRANCH", "STATIC_BRANCH", "AB_TEST_BRANCH"}

DEFAULT_BRANCH_NAME = "Default"


class Connection(HubSpotModel):
    """a forward edge to the next action."""

    next_action_id: str | None = None
    edge_type: str | None = None


class BranchConnection(Connection):
    """a labelled edge out of a branch container."""

    branch_name: str | None = None


class ListBranch(HubSpotModel):
    """v4 LIST_BRANCH entry: a filter branch with its own connection."""

    branch_name: str | None = None
    connection: Connection | None = None
    filter_branch: Any = None


class WorkflowAction(HubSpotModel):
    """One node in a flow's action graph."""

    action_id: str
    action_type_id: str | None = None
    type: str = "SINGLE_CONNECTION"
    field_values: dict[str, Any] | None = Field(default=None, alias="fields")
    connection: Connection | None = None
    connections: list[BranchConnection] | None = None
    list_branches: list[ListBranch] | None = None
    default_branch: Connection | None = None
    default_branch_name: str | None = None

    @property
    def is_branch(self) -> bool:
        return self.type in BRANCH_TYPES

    @property
    def next_action_id(self) -> str | None:
        """target of the single forward connection, if any."""
        if self.connection is None:
            return None
        return self.connection.next_action_id or None

    def branch_connections(self) -> list[BranchConnection]:
        """Normalize both branch shapes into one ordered list.

        The v4 shape (``listBranches`` + ``defaultBranch``) wins over the
        older ``connections`` list. Non-branch actions return an empty list.
        """
        if not self.is_branch:
            return []

        if self.list_branches:
            normalized = [
                BranchConnection(
                    branch_name=lb.branch_name,
                    next_action_id=lb.connection.next_action_id if lb.connection else None,
                )
                for lb in self.list_branches
            ]
            if self.default_branch is not None:
                normalized.append(BranchConnection(
                    branch_name=self.default_branch_name or DEFAULT_BRANCH_NAME,
                    next_action_id=self.default_branch.next_action_id,
                ))
            return normalized

        return list(self.connections or [])


class CriteriaFilter(HubSpotModel):
    """a single filter inside an enrollment criteria branch."""

    property: str | None = None
    filter_type: str | None = None
    operator: str | None = None
    list_id: str | None = None
    operation: dict[str, Any] | None = None


class EventFilterBranch(HubSpotModel):
    event_type_id: str | None = None
    operator: str | None = None
    filter_branch_type: str | None = None
    filters: list[CriteriaFilter] = []


class FilterBranch(HubSpotModel):
    filters: list[CriteriaFilter] = []


class ListFilterBranch(HubSpotModel):
    filter_branches: list[FilterBranch] = []


class EnrollmentCriteria(HubSpotModel):
    """How records enter a flow (EVENT_BASED, LIST_BASED, ...)."""

    type: str | None = None
    should_re_enroll: bool = False
    event_filter_branches: list[EventFilterBranch] = []
    list_membership_filter_branches: list[FilterBranch] = []
    list_filter_branch: ListFilterBranch | None = None


class WorkflowFlow(HubSpotModel):
    """A flow with its full action graph (summary + merged detail)."""

    id: str
    name: str | None = None
    is_enabled: bool = False
    object_type_id: str | None = None
    trigger_type: str | None = None
    start_action_id: str | None = None
    actions: list[WorkflowAction] = []
    enrollment_criteria: EnrollmentCriteria | None = None

    @model_validator(mode="after")
    def default_name(self) -> Self:
        """unnamed flows get a placeholder built from their id."""
        if not self.name:
            self.name = f"Workflow {self.id}"
        return self

    @property
    def action_count(self) -> int:
        return len(self.actions)

    def summary(self) -> dict:
        """the fields list_workflows reports for each flow."""
        return {
            "flowId": self.id,
            "name": self.name,
            "isEnabled": self.is_enabled,
            "objectTypeId": self.object_type_id,
            "triggerType": self.trigger_type,
            "actionCount": self.action_count,
        }
