"""Sample collection items for a fresh database.

Only empty collections are seeded, so running it twice is harmless.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plp.db.models import CollectionItemRecord
from plp.services import collections as collection_service

logger = logging.getLogger(__name__)

SAMPLE_ITEMS: dict[str, list[dict[str, Any]]] = {
    "benefits": [
        {
            "sectionTitle": "과정 특전",
            "title": "서울대학교 총장 명의 수료증",
            "description": "과정 이수 후 서울대학교 총장 명의의 수료증을 발급받을 수 있습니다.",
            "iconType": "certificate",
            "order": 0,
        },
        {
            "sectionTitle": "과정 특전",
            "title": "서울대학교 총동창회 준회원 자격",
            "description": "과정 수료 후 서울대학교 총동창회 준회원 자격이 부여됩니다.",
            "iconType": "network",
            "order": 1,
        },
    ],
    "faculty": [
        {
            "name": "홍길동",
            "biography": "서울대학교 정치외교학부 교수\n비교정치 전공",
            "imageUrl": "",
            "term": "1",
            "category": "서울대 정치외교학부 교수진",
            "order": 0,
        },
        {
            "name": "김철수",
            "biography": "前 국회 입법조사처장\n정치학 박사",
            "imageUrl": "",
            "term": "1",
            "category": "특별강사진",
            "order": 1,
        },
    ],
    "objectives": [
        {
            "sectionTitle": "과정 목표",
            "title": "정치 리더십 함양",
            "description": "민주적 가치에 기반한 정치 리더십을 기릅니다.",
            "order": 0,
        },
    ],
    "schedules": [
        {
            "title": "입학식",
            "date": "2025-03-04",
            "category": "academic",
            "location": "서울대학교 관악캠퍼스",
            "order": 0,
        },
    ],
    "notices": [
        {
            "title": "제1기 모집 안내",
            "content": "제1기 정치지도자과정 모집을 시작합니다.",
            "order": 0,
        },
    ],
}


async def seed_collections(session: AsyncSession) -> dict[str, int]:
    """Insert ``SAMPLE_ITEMS`` into every empty collection; returns counts inserted."""
    inserted: dict[str, int] = {}
    for name, documents in SAMPLE_ITEMS.items():
        existing = await session.scalar(
            select(func.count())
            .select_from(CollectionItemRecord)
            .where(CollectionItemRecord.collection == name)
        )
        if existing:
            logger.info(f"{name}: {existing} item(s) already present, skipping")
            inserted[name] = 0
            continue
        records = await collection_service.create_items(session, name, documents)
        inserted[name] = len(records)
    logger.info(f"✅ Seeded {sum(inserted.values())} item(s)")
    return inserted
