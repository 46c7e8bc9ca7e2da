"""Tests for entql.relations: key conventions, overrides, lazy and circular resolution, lookup errors."""

import pytest

from entql import (
    BelongsTo,
    BelongsToManyToMany,
    ConfigurationError,
    Entity,
    HasMany,
    HasManyToMany,
    HasOne,
    get_rel,
    rel,
)
from entql.relations import LazyRelation, ManyToManyRelation, Relation
from tests.entities import Account, Address, Email, Role, User


def test_has_many_conventions():
    r = User.get_rel("emails")
    assert isinstance(r, Relation)
    assert r.rel_type == "has-many"
    assert r.entity is Email
    assert r.table == "emails"
    assert r.pk.qualified_name == "users.id"
    assert r.fk.qualified_name == "emails.users_id"


def test_has_one_conventions():
    r = User.get_rel("address")
    assert r.rel_type == "has-one"
    assert r.entity is Address
    assert r.pk.qualified_name == "users.id"
    assert r.fk.qualified_name == "addresses.users_id"


def test_belongs_to_conventions():
    r = User.get_rel("account")
    assert r.rel_type == "belongs-to"
    assert r.entity is Account
    assert r.pk.qualified_name == "accounts.id"
    assert r.fk.qualified_name == "users.accounts_id"
    # the key names are reachable without parsing
    assert r.fk.name == "accounts_id"


def test_many_to_many_conventions():
    r = User.get_rel("roles")
    assert isinstance(r, ManyToManyRelation)
    assert r.map_table == "users_roles"
    assert r.pk.qualified_name == "users.id"
    assert r.fk.qualified_name == "users_roles.users_id"
    assert r.sub_pk.qualified_name == "roles.id"
    assert r.sub_fk.qualified_name == "users_roles.roles_id"

    back = Role.get_rel("users")
    assert back.rel_type == "belongs-to-many-to-many"
    assert back.map_table == "users_roles"
    assert back.fk.qualified_name == "users_roles.roles_id"
    assert back.sub_fk.qualified_name == "users_roles.users_id"


def test_overrides():
    class Team(Entity, table="teams", pk="team_id"):
        members = HasMany("Player", fk="team_ref")
        coach = BelongsTo("Player", fk="coach_ref")
        sponsors = HasManyToMany("Sponsor", map_table="team_sponsorships", fk="t_id", sub_fk="s_id")

    class Player(Entity, table="players", pk="player_id"):
        pass

    class Sponsor(Entity, table="sponsors"):
        pass

    members = Team.get_rel("members")
    assert members.pk.qualified_name == "teams.team_id"
    assert members.fk.qualified_name == "players.team_ref"
    coach = Team.get_rel("coach")
    assert coach.pk.qualified_name == "players.player_id"
    assert coach.fk.qualified_name == "teams.coach_ref"
    sponsors = Team.get_rel("sponsors")
    assert sponsors.map_table == "team_sponsorships"
    assert sponsors.fk.qualified_name == "team_sponsorships.t_id"
    assert sponsors.sub_fk.qualified_name == "team_sponsorships.s_id"
    assert sponsors.sub_pk.qualified_name == "sponsors.id"


def test_aliased_entities_name_keys_after_their_tables():
    class Writer(Entity, table="writers", alias="w"):
        novels = HasMany("Novel")
        imprint = BelongsTo("Imprint")
        genres = HasManyToMany("Genre")

    class Novel(Entity, table="novels", alias="n"):
        pass

    class Imprint(Entity, table="imprints", alias="i"):
        pass

    class Genre(Entity, table="genres", alias="g"):
        pass

    novels = Writer.get_rel("novels")
    assert novels.pk.qualified_name == "w.id"
    assert novels.fk.qualified_name == "n.writers_id"
    imprint = Writer.get_rel("imprint")
    assert imprint.pk.qualified_name == "i.id"
    assert imprint.fk.qualified_name == "w.imprints_id"
    genres = Writer.get_rel("genres")
    assert genres.map_table == "writers_genres"
    assert genres.pk.qualified_name == "w.id"
    assert genres.fk.qualified_name == "writers_genres.writers_id"
    assert genres.sub_fk.qualified_name == "writers_genres.genres_id"
    assert genres.sub_pk.qualified_name == "g.id"


def test_forward_reference_is_resolved_lazily():
    class Library(Entity, table="libraries"):
        shelves = HasMany("Shelf")

    lazy = Library._relations["shelves"]
    assert isinstance(lazy, LazyRelation)
    assert not lazy.is_forced

    class Shelf(Entity, table="shelves"):
        pass

    r = Library.get_rel("shelves")
    assert lazy.is_forced
    assert r.entity is Shelf
    assert r.fk.qualified_name == "shelves.libraries_id"
    # memoized
    assert Library.get_rel("shelves") is r


def test_circular_references():
    class Author(Entity, table="authors"):
        books = HasMany("Book")

    class Book(Entity, table="books"):
        author = BelongsTo("Author")

    assert Author.get_rel("books").entity is Book
    assert Book.get_rel("author").entity is Author
    assert Book.get_rel("author").fk.qualified_name == "books.authors_id"


def test_self_reference():
    class Category(Entity, table="categories"):
        parent = BelongsTo("Category", fk="parent_id")
        children = HasMany("Category", fk="parent_id")

    assert Category.get_rel("parent").entity is Category
    assert Category.get_rel("children").fk.qualified_name == "categories.parent_id"


def test_missing_entity_fails_when_used():
    class Orphan(Entity, table="orphans"):
        parent = BelongsTo("NoSuchEntity")

    with pytest.raises(ConfigurationError, match="Entity used in relationship does not exist: NoSuchEntity"):
        Orphan.get_rel("parent")


def test_missing_relation():
    with pytest.raises(ConfigurationError, match="No relationship defined for table: tags"):
        get_rel(User, "tags")
    with pytest.raises(ConfigurationError, match="No relationship defined for table: users"):
        get_rel(Address, User)


def test_get_rel_by_entity():
    assert get_rel(User, Email) is User.get_rel("emails")
    assert get_rel(Email, User) is Email.get_rel("user")


def test_rel_function():
    class Ship(Entity, table="ships"):
        pass

    class Crew(Entity, table="crews"):
        pass

    lazy = rel(Ship, "Crew", "has-one", name="crew")
    assert Ship.get_rel("crew") is lazy.force()
    rel(Ship, ("captain", Crew), "belongs-to", fk="captain_id")
    captain = Ship.get_rel("captain")
    assert captain.entity is Crew
    assert captain.fk.qualified_name == "ships.captain_id"
    # an entity class defaults the name to the entity name
    rel(Crew, Ship, "belongs-to")
    assert Crew.get_rel("ship").fk.qualified_name == "crews.ships_id"


def test_rel_unknown_type():
    class Planet(Entity, table="planets"):
        pass

    with pytest.raises(ConfigurationError, match="Unknown relation type"):
        rel(Planet, "Moon", "has-few")


def test_relations_are_inherited():
    class Vehicle(Entity, table="vehicles", pk="vin"):
        owner = BelongsTo("Account")

    class Truck(Vehicle, table="trucks"):
        pass

    assert Truck._get_pk() == "vin"
    r = Truck.get_rel("owner")
    assert r.fk.qualified_name == "trucks.accounts_id"
    assert Vehicle.get_rel("owner").fk.qualified_name == "vehicles.accounts_id"


def test_belongs_to_many_to_many_declaration():
    class Course(Entity, table="courses"):
        students = BelongsToManyToMany("Student")

    class Student(Entity, table="students"):
        courses = HasManyToMany("Course")

    assert Course.get_rel("students").map_table == "students_courses"
    assert Student.get_rel("courses").map_table == "students_courses"


def test_entity_cannot_be_instantiated():
    with pytest.raises(TypeError, match="rows are plain dicts"):
        User()


def test_has_one_declaration_type():
    assert HasOne("X").REL_TYPE == "has-one"
