"""Ownership guard — authorization checks that run before any write."""
from app.core.exceptions import ForbiddenError
from app.core.security import Principal
from app.models.property_model import Property


def ensure_can_create(principal: Principal) -> None:
    """Only agents and admins may publish listings."""
    if not principal.can_list:
        raise ForbiddenError("Only agents or admins can create properties")


def ensure_owner(prop: Property, principal: Principal) -> None:
    """Mutations are reserved to the agent recorded on the listing."""
    if prop.agent_id != principal.id:
        raise ForbiddenError("You are not the owner of this property")
