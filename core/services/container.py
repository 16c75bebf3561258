"""
Composition root: wires one session factory into every service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import core.config as config
from core.images import FilesystemImageStore, ImageStore
from core.models import utcnow
from core.services.cats import CatService
from core.services.collections import CollectionService
from core.services.comments import CommentService
from core.services.consistency import ConsistencyEngine
from core.services.credentials import CredentialStore
from core.services.follows import FollowService
from core.services.guard import AuthorizationGuard
from core.services.pagination import PaginationCodec
from core.services.shared import SessionFactory
from core.services.social_graph import SocialGraphRepository
from core.services.users import UserService


@dataclass
class Services:
    session_factory: SessionFactory
    credentials: CredentialStore
    guard: AuthorizationGuard
    codec: PaginationCodec
    engine: ConsistencyEngine
    repository: SocialGraphRepository
    users: UserService
    follows: FollowService
    cats: CatService
    collections: CollectionService
    comments: CommentService


def build_services(
    session_factory: SessionFactory,
    image_store: Optional[ImageStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    """Build the service graph around ``session_factory``."""
    if image_store is None:
        image_store = FilesystemImageStore(config.IMAGE_STORE_DIR)

    credentials = CredentialStore()
    guard = AuthorizationGuard()
    codec = PaginationCodec()
    engine = ConsistencyEngine(credentials, guard, clock=clock)
    repository = SocialGraphRepository(codec, credentials)

    return Services(
        session_factory=session_factory,
        credentials=credentials,
        guard=guard,
        codec=codec,
        engine=engine,
        repository=repository,
        users=UserService(session_factory, credentials, repository, image_store),
        follows=FollowService(session_factory, credentials, engine, repository),
        cats=CatService(session_factory, credentials, engine, repository, image_store),
        collections=CollectionService(session_factory, credentials, guard, engine, repository, clock=clock),
        comments=CommentService(session_factory, credentials, guard, repository, clock=clock),
    )
