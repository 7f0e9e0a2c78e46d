"""
PostgREST filter builders.
"""


def quote_filter_value(value: str) -> str:
    """
    Double-quote a value for a PostgREST logic filter so commas, periods,
    colons and parentheses are read as text.
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def ilike_any(columns: list[str], term: str) -> str:
    """
    `or_` filter matching `term` anywhere in any of the columns.

        ilike_any(["name", "email"], "oak (west)")
        -> 'name.ilike."%oak (west)%",email.ilike."%oak (west)%"'
    """
    pattern = quote_filter_value(f"%{term.strip()}%")
    return ",".join(f"{column}.ilike.{pattern}" for column in columns)
