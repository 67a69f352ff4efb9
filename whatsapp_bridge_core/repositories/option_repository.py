from typing import Any

from sqlalchemy.orm import Session

from ..db.db_option_models import SiteOption
from ..utils.crud_helpers import delete_records, get_value, upsert_value


class OptionRepository:
    """Site-wide named options."""

    def __init__(self, session: Session):
        self.session = session

    def get_option(self, name: str, default: Any = None) -> Any:
        return get_value(self.session, SiteOption, {"option_name": name}, "option_value", default)

    def update_option(self, name: str, value: Any) -> None:
        upsert_value(self.session, SiteOption, {"option_name": name}, "option_value", value)

    def delete_option(self, name: str) -> bool:
        return delete_records(self.session, SiteOption, {"option_name": name}) > 0
