"""ON CONFLICT clause tests."""

import pytest

from pgchain import ExpressionChain, InvalidArgumentsError, OnConflict, TablePrefixError


class TestOnConflict:
    def test_unconfigured(self):
        assert OnConflict().render() == ("", [])

    def test_target_without_action(self):
        c = OnConflict()
        c.on_column("a")
        assert c.render() == ("", [])

    def test_do_nothing_on_columns(self):
        c = OnConflict()
        c.on_column("a", "b COLLATE \"C\"").do_nothing()
        assert c.render() == ('ON CONFLICT ( a, b COLLATE "C" ) DO NOTHING', [])

    def test_do_nothing_on_constraint(self):
        c = OnConflict()
        c.on_constraint("pk").do_nothing()
        assert c.render() == ("ON CONFLICT ON CONSTRAINT pk DO NOTHING", [])

    def test_do_update_specializations(self):
        c = OnConflict()
        c.on_column("id").do_update().set_default("a").set_now("b").set("c", 3).set_sql(
            "d", "excluded.d"
        )
        assert c.render() == (
            "ON CONFLICT ( id ) DO UPDATE SET a = DEFAULT, b = now(), c = ?, d = excluded.d",
            [3],
        )

    def test_set_none(self):
        c = OnConflict()
        c.on_column("id").do_update().set("a", None, "b", 2)
        assert c.render() == ("ON CONFLICT ( id ) DO UPDATE SET a = NULL, b = ?", [2])

    def test_where_renders_after_assignments(self):
        c = OnConflict()
        update = c.on_column("id").do_update()
        update.where(ExpressionChain().and_where("t.k = ?", "w").or_where("t.j = ?", "v"))
        update.set("b", 1)
        assert c.render() == (
            "ON CONFLICT ( id ) DO UPDATE SET b = ? WHERE t.k = ? OR t.j = ?",
            [1, "w", "v"],
        )

    def test_odd_arity_set(self):
        c = OnConflict()
        with pytest.raises(InvalidArgumentsError, match="even"):
            c.on_column("id").do_update().set("a", 1, "b")

    def test_odd_arity_set_sql(self):
        c = OnConflict()
        with pytest.raises(InvalidArgumentsError, match="even"):
            c.on_column("id").do_update().set_sql("a")

    def test_non_string_column(self):
        c = OnConflict()
        with pytest.raises(InvalidArgumentsError, match="strings"):
            c.on_column("id").do_update().set(1, 2)

    def test_odd_arity_raises_through_chain(self):
        chain = ExpressionChain().insert({"a": 1}).table("t")
        with pytest.raises(InvalidArgumentsError):
            chain.on_conflict(lambda c: c.on_column("a").do_update().set("a"))

    def test_clone_is_independent(self):
        c = OnConflict()
        update = c.on_column("id").do_update().set("a", 1)
        copy = c.clone()
        update.set("b", 2)
        assert copy.render() == ("ON CONFLICT ( id ) DO UPDATE SET a = ?", [1])
        assert c.render() == ("ON CONFLICT ( id ) DO UPDATE SET a = ?, b = ?", [1, 2])

    def test_where_without_conditions_adds_nothing(self):
        c = OnConflict()
        c.on_column("id").do_update().set("a", 2).where(ExpressionChain())
        assert c.render() == ("ON CONFLICT ( id ) DO UPDATE SET a = ?", [2])

    def test_where_with_only_having_adds_nothing(self):
        c = OnConflict()
        c.on_column("id").do_update().set("a", 2).where(ExpressionChain().and_having("x > ?", 1))
        assert c.render() == ("ON CONFLICT ( id ) DO UPDATE SET a = ?", [2])

    def test_where_chain_errors_raise(self):
        inner = ExpressionChain()
        inner.table_prefixes()
        inner.and_where("{.missing}.a = ?", 1)
        chain = ExpressionChain().insert({"a": 1}).table("t")
        with pytest.raises(TablePrefixError, match="building conflict update where"):
            chain.on_conflict(lambda c: c.on_column("a").do_update().set("a", 2).where(inner))
