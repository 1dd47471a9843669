import logging
from dataclasses import dataclass

from src.core.entities import Asset, Visibility
from src.rules.models import AccessRules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str


class AccessPolicyEngine:
    def __init__(self, rules: AccessRules):
        self.rules = rules

    def explain(
        self,
        asset: Asset,
        requester_id: str | None,
        requester_role: str | None,
    ) -> AccessDecision:
        """
        Decide whether the requester may read the asset.

        Order of precedence:
        1. Admin role
        2. Ownership
        3. Public asset, any authenticated requester
        4. Private asset, role capability covers the asset type
        Anything else is denied.
        """
        # No identity, no access
        if not requester_id:
            return AccessDecision(False, "unauthenticated")

        if requester_role and requester_role == self.rules.admin_role:
            return AccessDecision(True, "admin")

        if asset.owner_id == requester_id:
            return AccessDecision(True, "owner")

        if asset.visibility is Visibility.PUBLIC:
            return AccessDecision(True, "public")

        if asset.type in self.rules.types_for(requester_role):
            return AccessDecision(True, f"role:{requester_role}")

        return AccessDecision(False, "no matching grant")

    def can_access(
        self,
        asset: Asset,
        requester_id: str | None,
        requester_role: str | None,
    ) -> bool:
        decision = self.explain(asset, requester_id, requester_role)
        if not decision.allowed:
            logger.warning(
                "Denied %s (role=%s) access to asset %s: %s",
                requester_id,
                requester_role,
                asset.id,
                decision.reason,
            )
        return decision.allowed

    def can_manage(
        self,
        asset: Asset,
        requester_id: str | None,
        requester_role: str | None,
    ) -> bool:
        """Update, delete and restore are reserved to the owner and admins."""
        if not requester_id:
            return False
        if requester_role and requester_role == self.rules.admin_role:
            return True
        return asset.owner_id == requester_id

    def is_admin(self, requester_role: str | None) -> bool:
        return bool(requester_role) and requester_role == self.rules.admin_role
