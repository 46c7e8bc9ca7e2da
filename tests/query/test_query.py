"""Tests for entql.query: constructors, composition operators, immutability and structural equality."""

import pytest

from entql import ConfigurationError, Entity, F, raw, sqlfn, subselect
from entql.compiler import compile_query
from entql.query import (
    ALL_COLUMNS,
    Query,
    delete_query,
    insert_query,
    merge_query,
    select_query,
    update_query,
)
from tests.entities import Email, User


def _sql(query):
    return compile_query(query)[0]


class TestConstructors:

    def test_select_query_defaults_to_every_column(self):
        q = select_query(User)
        assert isinstance(q, Query)
        assert q.type == "select"
        assert q.entity is User
        assert q.table == "users"
        assert q.field_expressions == (ALL_COLUMNS,)
        assert compile_query(q) == ('SELECT * FROM "users"', ())

    def test_constructors_return_queries_unchanged(self):
        q = select_query(User).where(id=1)
        assert select_query(q) is q
        assert update_query(q) is q

    def test_constructor_accepts_table_name(self):
        q = delete_query("logs")
        assert q.entity == "logs"
        assert _sql(q) == 'DELETE FROM "logs"'

    def test_constructor_rejects_other_values(self):
        with pytest.raises(ConfigurationError, match="Invalid entity"):
            select_query(42)

    def test_entity_default_fields_include_pk(self):
        class Profile(Entity, table="profiles"):
            fields = ("bio", "avatar")

        q = select_query(Profile)
        assert _sql(q) == 'SELECT "profiles"."bio", "profiles"."avatar", "profiles"."id" FROM "profiles"'
        # default fields are kept when more are added
        assert _sql(q.fields("age")) == (
            'SELECT "profiles"."bio", "profiles"."avatar", "profiles"."id", "profiles"."age" FROM "profiles"'
        )

    def test_aliased_entity_qualifies_with_alias(self):
        class ShortUser(Entity, table="users", alias="u"):
            pass

        q = select_query(ShortUser).fields("name").where(id=3)
        assert compile_query(q) == ('SELECT "u"."name" FROM "users" AS "u" WHERE ("u"."id" = ?)', (3,))

    def test_generated_table_needs_alias(self):
        with pytest.raises(ConfigurationError, match="Generated tables must have aliases"):
            class Broken(Entity, table=subselect(User)):
                pass

    def test_generated_table(self):
        class ActiveUser(Entity, table=subselect(User, lambda q: q.where(hits__gt=0)), alias="active"):
            pass

        sql, params = compile_query(select_query(ActiveUser).fields("name"))
        assert sql == 'SELECT "active"."name" FROM (SELECT * FROM "users" WHERE ("users"."hits" > ?)) AS "active"'
        assert params == (0,)


class TestFields:

    def test_first_fields_call_replaces_every_column(self):
        q = select_query(User).fields("name", ("email", "mail"))
        assert _sql(q) == 'SELECT "users"."name", "users"."email" AS "mail" FROM "users"'
        assert "mail" in q.aliases

    def test_later_fields_calls_append(self):
        q = select_query(User).fields("name").fields("email")
        assert _sql(q) == 'SELECT "users"."name", "users"."email" FROM "users"'

    def test_qualified_names_are_kept(self):
        q = select_query(User).fields("accounts.name")
        assert _sql(q) == 'SELECT "accounts"."name" FROM "users"'

    def test_expressions_and_raw(self):
        q = select_query(User).fields((sqlfn("lower", F("name")), "lname"), raw("1 AS one"))
        assert _sql(q) == 'SELECT LOWER("users"."name") AS "lname", 1 AS one FROM "users"'

    def test_rejects_unknown_field_types(self):
        with pytest.raises(TypeError):
            select_query(User).fields(12)


class TestWhere:

    def test_lookups(self):
        q = select_query(User).where(name__like="chris%", hits__gt=5)
        assert compile_query(q) == (
            'SELECT * FROM "users" WHERE ("users"."name" LIKE ?) AND ("users"."hits" > ?)',
            ("chris%", 5),
        )

    def test_expressions_are_qualified(self):
        q = select_query(User).where((F("hits") == 1) | (F("hits") > 5))
        assert compile_query(q) == (
            'SELECT * FROM "users" WHERE (("users"."hits" = ?) OR ("users"."hits" > ?))',
            (1, 5),
        )

    def test_mapping_with_operator_pairs(self):
        q = select_query(User).where({"name": ("like", "chris%"), "users.id": ("in", [1, 2])})
        assert compile_query(q) == (
            'SELECT * FROM "users" WHERE ("users"."name" LIKE ?) AND ("users"."id" IN (?, ?))',
            ("chris%", 1, 2),
        )

    def test_double_underscore_path(self):
        q = select_query(User).where(accounts__id=4)
        assert compile_query(q) == ('SELECT * FROM "users" WHERE ("accounts"."id" = ?)', (4,))

    def test_none_becomes_is_null(self):
        q = select_query(User).where(email=None, name__isnull=False)
        assert _sql(q) == 'SELECT * FROM "users" WHERE ("users"."email" IS NULL) AND "users"."name" IS NOT NULL'

    def test_field_against_field(self):
        q = select_query(User).where(F("hits") > F("accounts.id"))
        assert _sql(q) == 'SELECT * FROM "users" WHERE ("users"."hits" > "accounts"."id")'

    def test_rejects_other_values(self):
        with pytest.raises(TypeError, match="where requires"):
            select_query(User).where("id = 1")

    def test_rejects_empty_path(self):
        with pytest.raises(ValueError):
            select_query(User).where(**{"__gt": 1})

    def test_subselect(self):
        inner = subselect(Email, lambda q: q.fields("users_id").where(email__contains="acme"))
        sql, params = compile_query(select_query(User).where(F("id").in_(inner)))
        assert sql == (
            'SELECT * FROM "users" WHERE ("users"."id" IN '
            "(SELECT \"emails\".\"users_id\" FROM \"emails\" WHERE (\"emails\".\"email\" LIKE ? ESCAPE '\\')))"
        )
        assert params == ("%acme%",)


class TestOtherClauses:

    def test_order_group_limit_offset(self):
        q = select_query(User).order("name").order("id", "desc").group("accounts_id").limit(10).offset(20)
        assert _sql(q) == (
            'SELECT * FROM "users" GROUP BY "users"."accounts_id"'
            ' ORDER BY "users"."name" ASC, "users"."id" DESC LIMIT 10 OFFSET 20'
        )

    def test_order_rejects_unknown_direction(self):
        with pytest.raises(ValueError, match="direction"):
            select_query(User).order("name", "sideways")

    def test_page(self):
        assert select_query(User).page(2, 10) == select_query(User).limit(10).offset(20)

    def test_offset_without_limit_on_sqlite(self):
        assert _sql(select_query(User).offset(5)) == 'SELECT * FROM "users" LIMIT -1 OFFSET 5'

    def test_aggregate(self):
        q = select_query(User).aggregate("count", "*", "cnt", "accounts_id").order("cnt", "DESC")
        assert _sql(q) == (
            'SELECT COUNT(*) AS "cnt" FROM "users" GROUP BY "users"."accounts_id" ORDER BY "cnt" DESC'
        )

    def test_modifier(self):
        q = select_query(User).modifier("DISTINCT").fields("name")
        assert _sql(q) == 'SELECT DISTINCT "users"."name" FROM "users"'

    def test_from(self):
        q = select_query(User).from_(Email).where(F("emails.users_id") == F("users.id"))
        assert _sql(q) == 'SELECT * FROM "users", "emails" WHERE ("emails"."users_id" = "users"."id")'


class TestJoin:

    def test_explicit_join(self):
        q = select_query(User).join(Email, F("emails.users_id") == F("id"))
        assert _sql(q) == 'SELECT * FROM "users" LEFT JOIN "emails" ON ("emails"."users_id" = "users"."id")'

    def test_join_from_has_many_relation(self):
        q = select_query(User).join("emails")
        assert _sql(q) == 'SELECT * FROM "users" LEFT JOIN "emails" ON ("users"."id" = "emails"."users_id")'

    def test_join_from_belongs_to_relation(self):
        q = select_query(User).join("account", kind="inner")
        assert _sql(q) == (
            'SELECT * FROM "users" INNER JOIN "accounts" ON ("accounts"."id" = "users"."accounts_id")'
        )

    def test_join_from_many_to_many_relation(self):
        q = select_query(User).join("roles")
        assert _sql(q) == (
            'SELECT * FROM "users"'
            ' LEFT JOIN "users_roles" ON ("users"."id" = "users_roles"."users_id")'
            ' LEFT JOIN "roles" ON ("roles"."id" = "users_roles"."roles_id")'
        )

    def test_join_unknown_relation(self):
        with pytest.raises(ConfigurationError, match="No relationship defined for table: posts"):
            select_query(User).join("posts")

    def test_join_unknown_kind(self):
        with pytest.raises(ValueError, match="join kind"):
            select_query(User).join("emails", kind="sideways")


class TestWrites:

    def test_insert(self):
        q = insert_query(User).values({"name": "chris", "email": "c@x.org"})
        assert compile_query(q) == (
            'INSERT INTO "users" ("name", "email") VALUES (?, ?) RETURNING *',
            ("chris", "c@x.org"),
        )

    def test_insert_several_records(self):
        q = insert_query(User).values([{"name": "a"}, {"name": "b", "email": "e"}])
        assert compile_query(q) == (
            'INSERT INTO "users" ("name", "email") VALUES (?, ?), (?, ?) RETURNING *',
            ("a", None, "b", "e"),
        )

    def test_insert_without_values(self):
        assert _sql(insert_query(User)) == 'INSERT INTO "users" DEFAULT VALUES RETURNING *'

    def test_update(self):
        q = update_query(User).set_fields({"name": "x"}).set_fields({"hits": F("hits") + 1}).where(id=1)
        assert compile_query(q) == (
            'UPDATE "users" SET "name" = ?, "hits" = ("hits" + ?) WHERE ("users"."id" = ?)',
            ("x", 1, 1),
        )

    def test_update_needs_values(self):
        with pytest.raises(ValueError, match="at least one column"):
            compile_query(update_query(User))

    def test_delete(self):
        q = delete_query(User).where(id=1)
        assert compile_query(q) == ('DELETE FROM "users" WHERE ("users"."id" = ?)', (1,))


class TestComposition:

    def test_operators_do_not_modify_their_query(self):
        q = select_query(User)
        q.where(id=1).fields("name").limit(3)
        assert q == select_query(User)
        assert q.where_expressions == ()
        assert q.limit_value is None

    def test_equal_chains_give_equal_queries(self):
        assert select_query(User).where(id=1).fields("name") == select_query(User).where(id=1).fields("name")
        assert select_query(User).where(id=1) != select_query(User).where(id=2)
        assert hash(select_query(User).where(id=1)) == hash(select_query(User).where(id=1))

    def test_equal_expansions_give_equal_queries(self):
        def build(block=None):
            return select_query(User).with_("emails", block).with_("account").with_("address").with_("roles")

        assert build() == build()
        assert hash(build()) == hash(build())
        assert build(lambda q: q.where(email__like="%@acme.com")) == build(lambda q: q.where(email__like="%@acme.com"))
        assert build() != build(lambda q: q.fields("email"))
        assert select_query(User).with_("emails") != select_query(User).with_("address")

    def test_operators_on_different_parts_commute(self):
        a = select_query(User).where(id=1).order("name").limit(2)
        b = select_query(User).limit(2).order("name").where(id=1)
        assert a == b

    def test_clone_rejects_unknown_attributes(self):
        with pytest.raises(ValueError, match="Unknown query attributes"):
            select_query(User).clone_query_with(nope=1)

    def test_merge(self):
        fragment = select_query(Email).fields("email").where(email__like="%@acme.com").order("email")
        q = merge_query(select_query(User).join("emails"), fragment)
        assert _sql(q) == (
            'SELECT "emails"."email" FROM "users" LEFT JOIN "emails" ON ("users"."id" = "emails"."users_id")'
            ' WHERE ("emails"."email" LIKE ?) ORDER BY "emails"."email" ASC'
        )
        assert select_query(User).join("emails").merge(fragment) == q

    def test_as_sql(self):
        assert select_query(User).where(id=1).as_sql().exec() == 'SELECT * FROM "users" WHERE ("users"."id" = ?)'
