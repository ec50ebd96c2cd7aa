"""Rendering stays deterministic and chains stay independent."""

import logging

from pgchain import MAX_POSTGRES_PARAMETERS, ExpressionChain, desc


class TestDeterminism:
    def test_insert_ignores_mapping_order(self):
        first = ExpressionChain().insert({"b": 2, "a": 1, "c": None}).table("t").render()
        second = ExpressionChain().insert({"c": None, "a": 1, "b": 2}).table("t").render()
        assert first == second
        assert first.sql == "INSERT INTO t (a, b, c) VALUES ($1, $2, NULL)"

    def test_update_map_ignores_mapping_order(self):
        first = ExpressionChain().update_map({"b": 2, "a": 1}).table("t").render()
        second = ExpressionChain().update_map({"a": 1, "b": 2}).table("t").render()
        assert first == second

    def test_insert_multi_ignores_mapping_order(self):
        first = ExpressionChain().insert_multi({"b": [1, 2], "a": [3, 4]}).table("t").render()
        second = ExpressionChain().insert_multi({"a": [3, 4], "b": [1, 2]}).table("t").render()
        assert first == second
        assert first.args == [3, 1, 4, 2]

    def test_render_is_repeatable(self, users):
        users.and_where("id IN (?)", [1, 2]).or_where("name = ?", "x").order_by(desc("id"))
        segments = list(users.segments)
        assert users.render() == users.render()
        assert users.segments == segments

    def test_args_match_placeholders(self, users):
        result = users.and_where("a IN (?) AND b = ?", [1, 2, 3], None).render()
        assert result.sql.count("$") == len(result.args) == 3


class TestClone:
    def test_clone_is_independent(self, users):
        users.and_where("a = ?", 1)
        copy = users.clone()
        copy.and_where("b = ?", 2).limit(5)
        assert users.render().sql == "SELECT id, name FROM users WHERE a = $1"
        assert copy.render().sql == "SELECT id, name FROM users WHERE a = $1 AND b = $2 LIMIT 5"

    def test_clone_shares_db(self, db, users):
        assert users.clone().db is db

    def test_clone_copies_ctes(self):
        cte = ExpressionChain().select("a").table("x")
        chain = ExpressionChain().select("a").table("c").with_("c", cte)
        copy = chain.clone()
        cte.and_where("a = ?", 1)
        assert copy.render().sql == "WITH c AS (SELECT a FROM x) SELECT a FROM c"

    def test_clone_copies_conflict(self):
        chain = ExpressionChain().insert({"a": 1}).table("t")
        chain.on_conflict(lambda c: c.on_column("a").do_nothing())
        copy = chain.clone()
        chain.conflict.action.do_update().set("a", 2)
        assert copy.render().sql == "INSERT INTO t (a) VALUES ($1) ON CONFLICT ( a ) DO NOTHING"

    def test_clone_keeps_deferred_errors(self):
        chain = ExpressionChain().select("a").table("t").returning("a")
        assert chain.clone().errors == chain.errors


class TestParameterLimit:
    def test_warns_over_limit(self, caplog):
        values = list(range(MAX_POSTGRES_PARAMETERS + 1))
        chain = ExpressionChain().insert_multi({"a": values}).table("t")
        with caplog.at_level(logging.WARNING, logger="pgchain._rendering"):
            result = chain.render()
        assert len(result.args) == MAX_POSTGRES_PARAMETERS + 1
        assert any("parameters" in record.getMessage() for record in caplog.records)

    def test_silent_at_limit(self, caplog):
        values = list(range(MAX_POSTGRES_PARAMETERS))
        chain = ExpressionChain().insert_multi({"a": values}).table("t")
        with caplog.at_level(logging.WARNING, logger="pgchain._rendering"):
            chain.render()
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
