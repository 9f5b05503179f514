"""
Unit tests for predicate trees.

Tests text rendering, SQL rendering, query combination and relaxation.
"""

import pytest
from moodlist.generate.predicates import (
    MATCH_ALL,
    And,
    Comparison,
    Not,
    Op,
    Or,
    build_query,
    relax,
)


@pytest.fixture
def fast():
    return Comparison("tempo", Op.GE, 125.0)


@pytest.fixture
def happy():
    return Comparison("valence", Op.GE, 0.6)


@pytest.fixture
def chill():
    return Comparison("energy", Op.LE, 0.4)


@pytest.fixture
def rock():
    return Comparison("genre", Op.EQ, "rock")


@pytest.fixture
def pop():
    return Comparison("genre", Op.EQ, "pop")


class TestTextRendering:
    """Test the catalog text form."""

    def test_comparison(self, fast, rock):
        """Numbers render bare, strings quoted."""
        assert str(fast) == "tempo >= 125.0"
        assert str(rock) == "genre = 'rock'"

    def test_quotes_escaped(self):
        """Single quotes in values are doubled."""
        assert str(Comparison("genre", Op.EQ, "rock'n'roll")) == "genre = 'rock''n''roll'"

    def test_not(self, chill):
        """Negation wraps its operand in parentheses."""
        assert str(Not(chill)) == "NOT (energy <= 0.4)"

    def test_nested_and_inside_or(self, fast, happy, rock):
        """Compound operands are parenthesised."""
        predicate = Or((And((fast, happy)), rock))
        assert str(predicate) == "(tempo >= 125.0 AND valence >= 0.6) OR genre = 'rock'"


class TestBuildQuery:
    """Test combination of feature and genre predicates."""

    def test_features_and_genres(self, fast, happy, chill, rock, pop):
        """Features are ANDed, genres ORed inside parentheses."""
        query = build_query([fast, happy, chill], [rock, pop])
        assert str(query) == (
            "tempo >= 125.0 AND valence >= 0.6 AND energy <= 0.4 "
            "AND (genre = 'rock' OR genre = 'pop')"
        )

    def test_single_genre_still_parenthesised(self, happy, rock):
        """One genre is still wrapped when features precede it."""
        assert str(build_query([happy], [rock])) == "valence >= 0.6 AND (genre = 'rock')"

    def test_only_genres(self, rock, pop):
        """Genres alone are a bare disjunction."""
        assert str(build_query([], [rock, pop])) == "genre = 'rock' OR genre = 'pop'"

    def test_only_features(self, fast, happy):
        """Features alone are a bare conjunction."""
        assert str(build_query([fast, happy], [])) == "tempo >= 125.0 AND valence >= 0.6"

    def test_nothing_matches_everything(self):
        """No predicates at all match every song."""
        query = build_query([], [])
        assert query == MATCH_ALL
        assert query.to_sql() == ("1 = 1", [])


class TestSQLRendering:
    """Test parameterised SQL output."""

    def test_values_become_parameters(self, happy, rock):
        """Values are returned as SQL parameters."""
        sql, params = build_query([happy], [rock]).to_sql()
        assert sql == "(valence >= ?) AND ((genre = ?))"
        assert params == [0.6, "rock"]

    def test_or_sql(self, rock, pop):
        """Disjunctions render with parameters in order."""
        sql, params = Or((rock, pop)).to_sql()
        assert sql == "(genre = ?) OR (genre = ?)"
        assert params == ["rock", "pop"]

    def test_empty_or_matches_nothing(self):
        """An empty disjunction is false."""
        assert Or(()).to_sql() == ("1 = 0", [])

    def test_not_sql(self, chill):
        """Negation renders with its operand's parameters."""
        assert Not(chill).to_sql() == ("NOT (energy <= ?)", [0.4])

    def test_unknown_field_rejected(self):
        """Only catalog columns may appear in SQL."""
        with pytest.raises(ValueError):
            Comparison("energy; DROP TABLE songs", Op.GE, 0.6).to_sql()


class TestRelax:
    """Test one-step threshold loosening."""

    def test_high_threshold_loosens(self, happy):
        """A 0.6 lower bound drops to 0.5."""
        assert relax(happy) == Comparison("valence", Op.GE, 0.5)

    def test_low_threshold_loosens(self, chill):
        """A 0.4 upper bound rises to 0.5."""
        assert relax(chill) == Comparison("energy", Op.LE, 0.5)

    def test_tempo_unchanged(self, fast):
        """Tempo thresholds have no relaxation."""
        assert relax(fast) is fast

    def test_genre_unchanged(self, rock):
        """Genre comparisons never relax."""
        assert relax(rock) is rock

    def test_custom_table(self, fast):
        """A caller-supplied table overrides the default steps."""
        assert relax(fast, {125.0: 120.0}).value == 120.0
