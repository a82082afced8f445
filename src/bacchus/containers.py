"""Dependency container wiring for the application."""

import asyncio
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from supabase import create_client

from bacchus.adapters.cached_session_gateway import CachedSessionGateway
from bacchus.adapters.local_profile_store import LocalProfileStore
from bacchus.adapters.local_session_cache import LocalSessionCache
from bacchus.adapters.supabase_profile_store import SupabaseProfileStore
from bacchus.adapters.supabase_session_gateway import SupabaseSessionGateway
from bacchus.config import Settings, model_parameters
from bacchus.services.engine import SessionEngine
from bacchus.services.persistence import (
    PersistenceDispatcher,
    PersistenceGateway,
    ProfileStore,
)
from bacchus.services.registry import SessionRegistry
from bacchus.services.sweeper import InactivitySweeper


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    registry: SessionRegistry
    profile_store: ProfileStore
    dispatcher: PersistenceDispatcher
    engine: SessionEngine
    sweeper: InactivitySweeper | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    remote: PersistenceGateway | None = None
    profile_store: ProfileStore
    if resolved_settings.remote_sync_enabled:
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        remote = SupabaseSessionGateway(supabase_client)
        profile_store = SupabaseProfileStore(supabase_client)
    else:
        profile_store = LocalProfileStore(resolved_settings.cache_dir)
    gateway = CachedSessionGateway(
        local=LocalSessionCache(resolved_settings.cache_dir), remote=remote
    )
    executor = ThreadPoolExecutor(
        max_workers=resolved_settings.persistence_workers,
        thread_name_prefix="bacchus-persist",
    )
    dispatcher = PersistenceDispatcher(gateway=gateway, executor=executor)
    registry = SessionRegistry()
    engine = SessionEngine(
        registry=registry,
        profile_store=profile_store,
        dispatcher=dispatcher,
        params=model_parameters(resolved_settings),
        inactivity_threshold_hours=resolved_settings.inactivity_threshold_hours,
    )
    sweeper = InactivitySweeper(
        engine, interval_seconds=resolved_settings.sweep_interval_seconds
    )

    async def close_resources() -> None:
        await asyncio.to_thread(executor.shutdown, wait=True)

    return AppContainer(
        settings=resolved_settings,
        registry=registry,
        profile_store=profile_store,
        dispatcher=dispatcher,
        engine=engine,
        sweeper=sweeper,
        close_resources=close_resources,
    )
