"""
Default categories and vendor keyword table.

New users get SEED_CATEGORIES. The bank statement importer uses
VENDOR_CATEGORY_KEYWORDS to suggest one of those categories from a
transaction description; the first category (in table order) with a
keyword contained in the upper-cased description wins.
"""

from decimal import Decimal
from typing import Optional

from pnl_tracker.models.ledger import Category, TransactionType


VENDOR_CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Software/SaaS": [
        "GOOGLE", "GSUITE", "OPENAI", "CHATGPT", "GITHUB", "AZURE", "AWS",
        "AMAZON WEB SERVICES", "MICROSOFT", "ADOBE", "DROPBOX", "SLACK", "ZOOM",
        "NOTION", "FIGMA", "CANVA", "STRIPE", "TWILIO", "VERCEL", "NETLIFY",
        "HEROKU", "DIGITAL OCEAN", "DIGITALOCEAN", "ANTHROPIC", "CLAUDE",
        "REPLIT", "STATIC.APP", "APIFY", "ZAPIER", "N8N", "PADDLE", "NEOCITIES",
        "TAVILY", "FAL.AI", "SKOOL", "P.SKOOL", "WE-CONNECT", "CLAY LABS", "ZOHO",
        "HUBSPOT", "SALESFORCE", "AIRTABLE", "MONGODB", "SUPABASE", "FIREBASE",
        "JETBRAINS", "ATLASSIAN", "JIRA", "CONFLUENCE", "BITBUCKET", "GITLAB",
    ],
    "Business Meals": [
        "RESTAURANT", "CAFE", "COFFEE", "STARBUCKS", "DUNKIN", "MCDONALD",
        "CHIPOTLE", "SUBWAY", "PANERA", "GRUBHUB", "DOORDASH", "UBER EATS",
        "SEAMLESS", "POSTMATES", "WEIS MARKETS", "GROCERY", "FOOD", "PIZZA",
        "BURGER", "DELI", "BAKERY",
    ],
    "Travel": [
        "AIRLINE", "UNITED", "DELTA", "AMERICAN AIR", "SOUTHWEST", "JETBLUE",
        "SPIRIT", "UBER", "LYFT", "TAXI", "HOTEL", "MARRIOTT", "HILTON", "AIRBNB",
        "EXPEDIA", "BOOKING.COM", "KAYAK", "PRICELINE", "AMTRAK", "RENTAL CAR",
        "HERTZ", "ENTERPRISE", "FI @FI.DOGS",
    ],
    "Office Supplies": [
        "STAPLES", "OFFICE DEPOT", "BEST BUY", "APPLE STORE", "B&H PHOTO",
    ],
    "Marketing": [
        "FACEBOOK ADS", "META", "GOOGLE ADS", "LINKEDIN", "TWITTER ADS",
        "MAILCHIMP", "CONSTANT CONTACT", "SENDGRID", "CONVERTKIT",
    ],
    "Utilities": [
        "ELECTRIC", "GAS", "WATER", "INTERNET", "COMCAST", "ATT", "VERIZON",
        "SPECTRUM", "T-MOBILE", "XFINITY",
    ],
    "Insurance": [
        "INSURANCE", "GEICO", "STATE FARM", "PROGRESSIVE", "ALLSTATE",
        "LIBERTY MUTUAL",
    ],
}


# (name, type, deductibility percentage)
SEED_CATEGORIES: list[tuple[str, TransactionType, Decimal]] = [
    ("Sales", TransactionType.INCOME, Decimal("0")),
    ("Consulting", TransactionType.INCOME, Decimal("0")),
    ("Freelance Work", TransactionType.INCOME, Decimal("0")),
    ("Rent", TransactionType.EXPENSE, Decimal("100")),
    ("Utilities", TransactionType.EXPENSE, Decimal("100")),
    ("Marketing", TransactionType.EXPENSE, Decimal("100")),
    ("Software/SaaS", TransactionType.EXPENSE, Decimal("100")),
    ("Travel", TransactionType.EXPENSE, Decimal("100")),
    ("Office Supplies", TransactionType.EXPENSE, Decimal("100")),
    ("Insurance", TransactionType.EXPENSE, Decimal("100")),
    # Meals are only half deductible
    ("Business Meals", TransactionType.EXPENSE, Decimal("50")),
]


def seed_categories(user_id: Optional[str] = None) -> list[Category]:
    """Fresh Category objects (new ids) for a new user."""
    return [
        Category(
            user_id=user_id,
            name=name,
            type=tx_type,
            deductibility_percentage=pct,
        )
        for name, tx_type, pct in SEED_CATEGORIES
    ]
