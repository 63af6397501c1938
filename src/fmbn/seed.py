"""Demo data: the demo account, its community profile and the starter product catalogue."""

from __future__ import annotations

import structlog

from fmbn.config import Settings
from fmbn.db.models import User
from fmbn.storage import Storage

logger = structlog.get_logger()

DEMO_PROFILE: dict = {
    "display_name": "MrBizWhiz",
    "bio": "Caribbean entrepreneur passionate about business naming and digital innovation",
    "business_name": "BizWhiz Consulting",
    "business_stage": "growing",
    "industry": "Consulting",
    "location": "Trinidad & Tobago",
    "interests": ["Networking", "Caribbean Markets", "Digital Marketing", "Innovation"],
    "looking_for": "Partnership opportunities and funding connections",
    "can_help": "Business naming strategies and market validation",
    "is_public": True,
}

PRODUCT_SEED_DATA: list[dict] = [
    {
        "title": "Caribbean Legal Document Templates Bundle",
        "description": (
            "Complete collection of business legal documents customized for Caribbean markets. "
            "Includes Privacy Policies, Terms & Conditions, NDAs, and Independent Contractor agreements."
        ),
        "price": 10000,
        "category": "legal",
        "file_name": "caribbean-legal-templates.zip",
        "file_path": "/products/legal-templates.zip",
        "file_size": 2048000,
    },
    {
        "title": "Caribbean Business Financial Tracker",
        "description": (
            "Spreadsheet templates for tracking income, expenses, and cash flow "
            "with Caribbean currency support."
        ),
        "price": 2500,
        "category": "financial",
        "file_name": "caribbean-financial-tracker.xlsx",
        "file_path": "/products/financial-tracker.xlsx",
        "file_size": 512000,
    },
    {
        "title": "Caribbean Brand Color Psychology Guide",
        "description": (
            "Color psychology guide with Caribbean cultural insights for choosing colors "
            "that resonate with local and international markets."
        ),
        "price": 3500,
        "category": "branding",
        "file_name": "caribbean-brand-color-guide.pdf",
        "file_path": "/products/brand-color-guide.pdf",
        "file_size": 5120000,
    },
    {
        "title": "Multi-Language Business Document Translation Service",
        "description": (
            "Translation of your business documents into 15+ languages, including the major "
            "Caribbean Creole languages."
        ),
        "price": 1500,
        "category": "services",
        "file_name": "translation-service-voucher.pdf",
        "file_path": "/products/translation-service.pdf",
        "file_size": 256000,
    },
]


async def ensure_demo_user(storage: Storage, settings: Settings) -> User:
    """Create the demo account and profile if missing. Idempotent."""
    user = await storage.get_user_by_email(settings.demo_user_email)
    if user is None:
        user = await storage.create_user(settings.demo_username, settings.demo_user_email, settings.demo_plan)
        logger.info("demo_user_created", user_id=user.id)
    if await storage.get_user_profile(user.id) is None:
        await storage.create_user_profile(user.id, **DEMO_PROFILE)
    return user


async def seed_products(storage: Storage) -> int:
    """Insert the starter catalogue into an empty store. Returns the number inserted."""
    if await storage.get_all_digital_products():
        return 0
    for product in PRODUCT_SEED_DATA:
        await storage.create_digital_product(**product)
    logger.info("products_seeded", count=len(PRODUCT_SEED_DATA))
    return len(PRODUCT_SEED_DATA)


async def seed_demo_data(storage: Storage, settings: Settings) -> None:
    await ensure_demo_user(storage, settings)
    await seed_products(storage)
