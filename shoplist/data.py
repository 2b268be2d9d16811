# Built-in sample catalog used to seed a new owner's list

CATEGORIES = ("Produce", "Pantry", "Snacks", "Frozen", "Dairy")

SAMPLE_PRODUCTS = [
    {"id": 1, "name": "Mandarin Orange Chicken", "price": 4.99, "category": "Frozen"},
    {"id": 2, "name": "Everything But The Bagel Seasoning", "price": 2.99, "category": "Pantry"},
    {"id": 3, "name": "Cauliflower Gnocchi", "price": 2.69, "category": "Frozen"},
    {"id": 4, "name": "Dark Chocolate Peanut Butter Cups", "price": 4.49, "category": "Snacks"},
    {"id": 5, "name": "Organic Carrots", "price": 1.99, "category": "Produce"},
    {"id": 6, "name": "Unexpected Cheddar Cheese", "price": 5.99, "category": "Dairy"},
    {"id": 7, "name": "Joe Joes Cookies", "price": 3.49, "category": "Snacks"},
    {"id": 8, "name": "Organic Spinach", "price": 2.49, "category": "Produce"},
    {"id": 9, "name": "Orange Chicken Fried Rice", "price": 3.99, "category": "Frozen"},
    {"id": 10, "name": "Speculoos Cookie Butter", "price": 3.99, "category": "Pantry"},
    {"id": 11, "name": "Greek Yogurt", "price": 4.99, "category": "Dairy"},
    {"id": 12, "name": "Mini Ice Cream Cones", "price": 4.49, "category": "Frozen"},
]

def sample_catalog() -> list[dict]:
    return [dict(p) for p in SAMPLE_PRODUCTS]
