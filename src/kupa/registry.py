from kupa.models import ParserInfo
from kupa.parsers.bank import parse_bank_rows
from kupa.parsers.credit import parse_credit_rows


class ParserRegistry:
    def __init__(self):
        self._parsers: dict[str, ParserInfo] = {}
        self._by_sheet_type: dict[str, list[ParserInfo]] = {}

    def register(self, info: ParserInfo) -> None:
        self._parsers[info.key] = info
        self._by_sheet_type.setdefault(info.sheet_type, []).append(info)

    def get_by_key(self, key: str) -> ParserInfo | None:
        return self._parsers.get(key)

    def get_for_sheet_type(self, sheet_type: str) -> ParserInfo | None:
        parsers = self._by_sheet_type.get(sheet_type, [])
        return parsers[0] if parsers else None

    def list_all(self) -> list[ParserInfo]:
        return list(self._parsers.values())


registry = ParserRegistry()

registry.register(ParserInfo(
    key="credit_detail", name="Credit card statement",
    sheet_type="credit", parse=parse_credit_rows,
))
registry.register(ParserInfo(
    key="bank_statement", name="Bank account statement",
    sheet_type="bank", parse=parse_bank_rows,
))
