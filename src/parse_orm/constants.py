# Comparison operators accepted by Query.where(field, operator, value),
# mapped onto the Query predicate method that handles them.
OPERATORS = {
    "=": "equal_to",
    "!=": "not_equal_to",
    ">": "greater_than",
    ">=": "greater_than_or_equal_to",
    "<": "less_than",
    "<=": "less_than_or_equal_to",
    "in": "contained_in",
}

ASCENDING_TOKENS = (1, "asc", "ascending")
DESCENDING_TOKENS = (0, "desc", "descending")

# Projections that mean "every field" and are never sent to the server.
WILDCARD_SELECTS = (None, "*", ["*"], ("*",))

OBJECT_ID = "objectId"
