"""
Voter search service.

Entry point used by the HTTP API, the chat bot and the CLI. Every call
checks out its own datastore session and holds no state between calls.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

from ..config import SearchConfig
from ..exceptions import ValidationError, VoterNotFoundError
from ..logger import get_logger
from ..models import VOTER_COLUMNS, SearchMethod, SearchQuery, VoterDetails, VoterRecord
from .expressions import Column, ILike, Param, SelectQuery, UpperEquals, WardScope
from .strategies import SearchStrategy, TieredSearch, default_strategies, like_pattern

logger = get_logger(__name__)

VOTER_DETAILS_SQL = """
    SELECT
        v.epic_number,
        v.full_name,
        v.age,
        v.part_no,
        v.sr_no,
        v.address,
        v.house_number,
        v.gender,
        v.pincode,
        v.ac_no,
        v.relation_name,
        v.relation_type,
        p.booth_name,
        p.english_booth_address
    FROM "Voter" v
    LEFT JOIN "PartNo" p ON v.part_no = p.part_no
    WHERE UPPER(v.epic_number) = UPPER(%(epic)s)
      AND v.part_no IN (SELECT part_no FROM "PartNo" WHERE ward_no = %(ward)s)
    LIMIT 1
"""


class VoterSearchService:
    """
    Looks up voters by name, EPIC number or house number within a ward.

    Wards are expected to be validated by the caller (see wards.validate_ward).
    """

    def __init__(
        self,
        datastore,
        config: Optional[SearchConfig] = None,
        strategies: Optional[Sequence[SearchStrategy]] = None,
    ):
        """
        Args:
            datastore: Object exposing a ``session()`` context manager
            config: Search configuration (limits, weights)
            strategies: Name-search strategies in fallback order
        """
        self.datastore = datastore
        self.config = config or SearchConfig()
        if strategies is None:
            strategies = default_strategies(
                self.config.weights,
                limit=self.config.result_limit,
                extension=self.config.trigram_extension,
            )
        self.tiers = TieredSearch(strategies)

    def search(
        self,
        query: str,
        ward: int,
        method: Union[SearchMethod, str] = SearchMethod.NAME,
    ) -> List[VoterRecord]:
        """Dispatch on search method."""
        method = SearchMethod.parse(method)
        if method is SearchMethod.EPIC:
            return self.search_by_epic(query, ward)
        if method is SearchMethod.HOUSE:
            return self.search_by_house(query, ward)
        return self.search_by_name(query, ward)

    def search_by_name(self, query: str, ward: int) -> List[VoterRecord]:
        """
        Ranked fuzzy name search.

        Returns at most ``result_limit`` records with distinct EPIC numbers,
        best match first. An empty query returns no records.
        """
        search_query = SearchQuery(query, ward)
        if search_query.is_empty:
            return []

        with self.datastore.session() as session:
            records = self.tiers.run(session, search_query)

        logger.info(f"Name search in ward {ward}: {len(records)} match(es)")
        return records

    def search_by_epic(self, epic: str, ward: int, limit: Optional[int] = None) -> List[VoterRecord]:
        """Exact, case-insensitive EPIC lookup. The ward filter always applies."""
        epic = (epic or "").strip()
        if not epic:
            return []

        statement = SelectQuery(
            columns=VOTER_COLUMNS,
            where=[WardScope(), UpperEquals(Column("epic_number"), Param("epic"))],
            order_by=("full_name ASC",),
            limit=Param("limit"),
        )
        sql, params = statement.bind({
            "epic": epic,
            "ward": str(ward),
            "limit": limit or self.config.epic_limit,
        })
        with self.datastore.session() as session:
            rows = session.fetch_all(sql, params)
        return [VoterRecord.from_row(row) for row in rows]

    def search_by_house(self, house: str, ward: int) -> List[VoterRecord]:
        """Voters whose house/society number contains the given text."""
        house = (house or "").strip()
        if not house:
            return []

        statement = SelectQuery(
            columns=VOTER_COLUMNS,
            where=[WardScope(), ILike(Column("house_number"), Param("house_pattern"))],
            order_by=("part_no ASC", "sr_no ASC"),
            limit=Param("limit"),
        )
        sql, params = statement.bind({
            "house_pattern": like_pattern(house),
            "ward": str(ward),
            "limit": self.config.result_limit,
        })
        with self.datastore.session() as session:
            rows = session.fetch_all(sql, params)
        return [VoterRecord.from_row(row) for row in rows]

    def get_voter_details(self, epic: str, ward: int) -> VoterDetails:
        """
        Full record with polling-station details for the voter slip.

        Raises:
            ValidationError: if no EPIC number is given
            VoterNotFoundError: if the voter is not enrolled in the ward
        """
        epic = (epic or "").strip()
        if not epic:
            raise ValidationError("EPIC number is required", field_name="epic")

        with self.datastore.session() as session:
            row = session.fetch_one(VOTER_DETAILS_SQL, {"epic": epic, "ward": str(ward)})
        if row is None:
            raise VoterNotFoundError(epic, ward)
        return VoterDetails.from_row(row, ward)

    def trigram_available(self) -> bool:
        """Whether the fuzzy (trigram) tier can run against this database."""
        with self.datastore.session() as session:
            return session.extension_exists(self.config.trigram_extension)
