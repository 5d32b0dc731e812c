"""CRUD operations module."""

from src.db.crud.recommendations import (
    add_logs,
    get_log,
    get_logs,
    get_recent_log_keys,
    set_log_action,
)
from src.db.crud.taste_profiles import (
    get_all_user_ids,
    get_other_taste_profile_records,
    get_taste_profile_record,
    save_taste_profile_record,
)
from src.db.crud.watchlist import (
    apply_details,
    count_watched,
    count_watched_by_user,
    get_community_ratings,
    get_entries_for_titles,
    get_external_rating,
    get_list_keys,
    get_title_ratings,
    get_top_rated_watched,
    get_watched_entries,
)

__all__ = [
    "add_logs",
    "apply_details",
    "count_watched",
    "count_watched_by_user",
    "get_all_user_ids",
    "get_community_ratings",
    "get_entries_for_titles",
    "get_external_rating",
    "get_list_keys",
    "get_log",
    "get_logs",
    "get_other_taste_profile_records",
    "get_recent_log_keys",
    "get_taste_profile_record",
    "get_title_ratings",
    "get_top_rated_watched",
    "get_watched_entries",
    "save_taste_profile_record",
    "set_log_action",
]
