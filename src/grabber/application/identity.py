import aiohttp
from src.config.logger_config import logger

from src.grabber.application.ports import MirrorStorePort, RemoteSourcePort
from src.grabber.domain.errors import RemoteContractError
from src.grabber.domain.models import Identity
from src.grabber.domain.rules import IMPORTED_USER_PREFIX, UNKNOWN_ACTOR_NAME, is_valid_username


class IdentityReconciler:
    """Map a remote (user id, user name) pair onto a local actor.

    Renames seen during a run are cached per user id, so every later record of
    the same user is attributed to the current name without asking the remote
    again. Create one reconciler per run.
    """

    def __init__(
        self,
        remote: RemoteSourcePort,
        session: aiohttp.ClientSession,
        store: MirrorStorePort,
        *,
        dry_run: bool = False,
    ) -> None:
        self.remote = remote
        self.session = session
        self.store = store
        self.dry_run = dry_run
        self.resolved: dict[int, Identity] = {}
        self.remote_lookups = 0
        self.renames = 0

    async def resolve(self, user_id: int, user_name: str | None) -> Identity:
        user_id = int(user_id or 0)
        name = user_name or ""
        if not name:
            return self._acquire(Identity(user_id=0, name=UNKNOWN_ACTOR_NAME, origin="unknown"))

        if not user_id:
            # Old imported edits can be attributed to anonymous users; keep such
            # names apart from real local accounts
            if is_valid_username(name):
                return self._acquire(Identity(user_id=0, name=IMPORTED_USER_PREFIX + name, origin="imported"))
            origin = "imported" if name.startswith(IMPORTED_USER_PREFIX) else "anonymous"
            return self._acquire(Identity(user_id=0, name=name, origin=origin))

        cached = self.resolved.get(user_id)
        if cached is not None:
            return cached

        existing = self.store.get_actor_by_user_id(user_id)
        if existing is not None and existing.name != name:
            identity = await self._rename(existing)
        elif existing is not None:
            identity = existing
        else:
            await self._release_name(user_id, name)
            identity = self._acquire(Identity(user_id=user_id, name=name, origin="registered"))
        self.resolved[user_id] = identity
        return identity

    async def _rename(self, existing: Identity) -> Identity:
        name = await self._refresh_user_name(existing)
        if existing.name != name:
            self.renames += 1
            logger.info("Notice: We encountered a user rename on ID {}, {} => {}", existing.user_id, existing.name, name)
        identity = Identity(user_id=existing.user_id, name=name, origin="registered", actor_id=existing.actor_id)
        self.resolved[existing.user_id] = identity
        return identity

    async def _release_name(self, user_id: int, name: str) -> None:
        """Make ``name`` free locally before a new user id takes it.

        A local actor can still hold the name of an account that was renamed
        upstream and whose old name another account took since.
        """
        holder = self.store.get_actor_by_name(name)
        if holder is None or holder.user_id == user_id:
            return
        if holder.is_registered:
            current = self.resolved.get(holder.user_id) or await self._rename(holder)
            if current.name != name:
                return
        raise RemoteContractError(
            f"User name {name} of ID {user_id} is still held locally by ID {holder.user_id}"
        )

    async def _refresh_user_name(self, existing: Identity) -> str:
        """Ask the remote for the current name of ``existing`` and store it locally."""
        user_id = existing.user_id
        self.remote_lookups += 1
        new_name = await self.remote.fetch_user_name(self.session, user_id)
        if not new_name:
            raise RemoteContractError(f"User ID {user_id} not found, is that a suppressed user now?")
        if new_name == existing.name:
            return new_name

        conflicting = self.store.get_actor_by_name(new_name)
        if conflicting is not None and conflicting.user_id != user_id:
            logger.warning(
                "Notice: User name {} is already in use by ID {}, keeping user name {} for {}",
                new_name,
                conflicting.user_id,
                existing.name,
                user_id,
            )
            return existing.name

        if self.dry_run:
            logger.info("[DRY] Would have renamed user {} from {} to {}", user_id, existing.name, new_name)
        else:
            self.store.rename_actor(user_id, new_name)
        return new_name

    def _acquire(self, identity: Identity) -> Identity:
        if self.dry_run:
            if identity.is_registered:
                found = self.store.get_actor_by_user_id(identity.user_id)
            else:
                found = self.store.get_actor_by_name(identity.name)
            return Identity(
                user_id=identity.user_id,
                name=identity.name,
                origin=identity.origin,
                actor_id=found.actor_id if found is not None else None,
            )
        actor_id = self.store.acquire_actor(identity)
        return Identity(user_id=identity.user_id, name=identity.name, origin=identity.origin, actor_id=actor_id)
