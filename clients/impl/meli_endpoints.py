PRODUCT_ITEMS_PATH = "/products/{product_id}/items"

ITEM_COMPETITION_PATH = "/items/{item_id}/catalog_seller_competition"

ITEM_PATH = "/items/{item_id}"

USER_PATH = "/users/{user_id}"

ITEM_ATTRIBUTES = "id,title,price,seller_id"
