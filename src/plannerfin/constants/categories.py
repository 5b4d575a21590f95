"""
Starter category set and default budget name for newly created profiles.
Entries reference categories by name, so these names are part of stored data.
"""

DEFAULT_BUDGET_NAME = "Main Budget"

# Starter categories - Income
INCOME_CATEGORIES = [
    {
        "name": "Salário",
        "color": "#22c55e",
        "icon": "💰",
        "description": "Salário principal",
    },
    {
        "name": "Freelance",
        "color": "#3b82f6",
        "icon": "💼",
        "description": "Trabalhos extras e consultorias",
    },
]

# Starter categories - Expenses
EXPENSE_CATEGORIES = [
    {
        "name": "Alimentação",
        "color": "#ef4444",
        "icon": "🍽️",
        "description": "Gastos com comida e restaurantes",
    },
    {
        "name": "Transporte",
        "color": "#f97316",
        "icon": "🚗",
        "description": "Combustível, transporte público, etc.",
    },
    {
        "name": "Moradia",
        "color": "#eab308",
        "icon": "🏠",
        "description": "Aluguel, condomínio, IPTU",
    },
    {
        "name": "Lazer",
        "color": "#8b5cf6",
        "icon": "🎮",
        "description": "Entretenimento e diversão",
    },
]


def starter_categories() -> list[dict]:
    """Return the starter set tagged with its entry type, income first."""

    return [{**cat, "type": "income"} for cat in INCOME_CATEGORIES] + [
        {**cat, "type": "expense"} for cat in EXPENSE_CATEGORIES
    ]
