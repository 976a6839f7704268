"""
Post context service.

A post context is what the seller wants the assistant to know when someone
asks about a particular Instagram post: key points, the products shown,
pricing, promotions and FAQs. AI generation looks one up by media id.
"""

from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import InstagramAccountModel, PostContextModel
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import NotFoundError
from neuraslide.models.common import Pagination
from neuraslide.models.post_context import ContextType, PostContext, PostContextCreate, PostContextUpdate

logger = structlog.get_logger()

_contexts = BaseRepository(PostContextModel)
_accounts = BaseRepository(InstagramAccountModel)

DEFAULT_TONE = "friendly"


def _to_pydantic(row: PostContextModel) -> PostContext:
    return PostContext(
        id=row.id,
        user_id=row.user_id,
        instagram_account_id=row.instagram_account_id,
        media_id=row.media_id,
        caption=row.caption,
        context_type=row.context_type,
        title=row.title,
        description=row.description,
        key_points=list(row.key_points or []),
        products=list(row.products or []),
        pricing=row.pricing,
        promotions=row.promotions,
        faqs=row.faqs,
        response_tone=row.response_tone or DEFAULT_TONE,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def prompt_context(row: PostContextModel) -> Dict[str, Any]:
    """The parts of a post context worth putting in a system prompt."""
    context: Dict[str, Any] = {
        "caption": row.caption,
        "title": row.title,
        "description": row.description,
        "keyPoints": list(row.key_points or []),
        "products": list(row.products or []),
        "pricing": row.pricing,
        "promotions": row.promotions,
        "faqs": row.faqs,
        "responseTone": row.response_tone or DEFAULT_TONE,
    }
    return {k: v for k, v in context.items() if v not in (None, [], {})}


async def find_active_context(session: AsyncSession, user_id: str, media_id: str) -> Optional[PostContextModel]:
    """Newest active context the user stored for ``media_id``."""
    result = await session.execute(
        select(PostContextModel)
        .where(
            PostContextModel.user_id == user_id,
            PostContextModel.media_id == media_id,
            PostContextModel.is_active.is_(True),
        )
        .order_by(PostContextModel.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


class PostContextService:

    def __init__(self, db: Database):
        self.db = db

    async def _get_owned(self, session: AsyncSession, user_id: str, context_id: str) -> PostContextModel:
        row = await _contexts.get_owned(session, context_id, user_id)
        if row is None:
            raise NotFoundError("Post context not found")
        return row

    async def create_context(self, user_id: str, data: PostContextCreate) -> PostContext:
        async with self.db.session() as session:
            if await _accounts.get_owned(session, data.instagram_account_id, user_id) is None:
                raise NotFoundError("Instagram account not found")

            row = await _contexts.create(
                session,
                user_id=user_id,
                instagram_account_id=data.instagram_account_id,
                media_id=data.media_id.strip(),
                caption=data.caption or None,
                context_type=ContextType.MANUAL.value,
                title=data.title or None,
                description=data.description or None,
                key_points=list(data.key_points),
                products=list(data.products),
                pricing=data.pricing or None,
                promotions=data.promotions or None,
                faqs=data.faqs or None,
                response_tone=data.response_tone or DEFAULT_TONE,
                is_active=True,
            )
            logger.info("post_context_created", context_id=row.id, media_id=row.media_id, user_id=user_id)
            return _to_pydantic(row)

    async def list_contexts(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        instagram_account_id: Optional[str] = None,
        media_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[PostContext], Pagination]:
        stmt = select(PostContextModel).where(PostContextModel.user_id == user_id)
        if instagram_account_id:
            stmt = stmt.where(PostContextModel.instagram_account_id == instagram_account_id)
        if media_id:
            stmt = stmt.where(PostContextModel.media_id == media_id)
        if is_active is not None:
            stmt = stmt.where(PostContextModel.is_active == is_active)

        async with self.db.session() as session:
            total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
            rows = (await session.execute(
                stmt.order_by(PostContextModel.created_at.desc()).offset((page - 1) * limit).limit(limit)
            )).scalars().all()
        return [_to_pydantic(r) for r in rows], Pagination.build(page, limit, total)

    async def get_context(self, user_id: str, context_id: str) -> PostContext:
        async with self.db.session() as session:
            return _to_pydantic(await self._get_owned(session, user_id, context_id))

    async def update_context(self, user_id: str, context_id: str, data: PostContextUpdate) -> PostContext:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, context_id)
            changes = data.model_dump(exclude_none=True)
            row = await _contexts.update(session, row, **changes)
            logger.info("post_context_updated", context_id=context_id, fields=sorted(changes))
            return _to_pydantic(row)

    async def delete_context(self, user_id: str, context_id: str) -> None:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, context_id)
            await _contexts.delete(session, row)
        logger.info("post_context_deleted", context_id=context_id, user_id=user_id)


def get_post_context_service(db: Database = Depends(get_database)) -> PostContextService:
    return PostContextService(db)
