# tests/test_builder_basics.py
import pytest

from fixtura import Builder, ConfigError
from sample_models import Creature, Monster, NeedsArgs


def _state(m: Monster) -> dict:
    return {k: v for k, v in vars(m).items() if k not in ("stream",)}


def test_new_builder_builds_default_instances():
    b = Builder.new(Monster)
    a, c = b.build(), b.build()
    assert isinstance(a, Monster) and isinstance(c, Monster)
    assert a is not c
    assert a.age == 0 and a.tags == []


@pytest.mark.parametrize("n", [0, 1, 5])
def test_build_many_returns_exactly_n_distinct_instances(n):
    out = Builder.new(Monster).with_("age", 7).build_many(n)
    assert isinstance(out, list)
    assert len(out) == n
    assert len({id(m) for m in out}) == n
    assert all(m.age == 7 for m in out)


def test_build_many_rejects_negative_count():
    with pytest.raises(ValueError):
        Builder.new(Monster).build_many(-1)


def test_new_requires_a_zero_argument_constructor():
    with pytest.raises(ConfigError) as ei:
        Builder.new(NeedsArgs)
    assert "size" in str(ei.value)


def test_new_rejects_abstract_classes_and_non_classes():
    with pytest.raises(ConfigError):
        Builder.new(Creature)
    with pytest.raises(ConfigError):
        Builder.new(42)  # type: ignore[arg-type]


def test_later_steps_for_the_same_field_win():
    m = Builder.new(Monster).with_("age", 1).with_("age", 2).build()
    assert m.age == 2


def test_deriving_never_changes_the_parent():
    base = Builder.new(Monster).with_("age", 1)
    derived = base.with_("age", 2).with_("name", "x")
    assert base.build().age == 1
    assert base.build().name == ""
    assert derived.build().age == 2


def test_chained_and_stepwise_configuration_behave_the_same():
    chained = Builder.new(Monster).with_("age", 1).with_("name", "a")
    first = Builder.new(Monster).with_("age", 1)
    stepwise = first.with_("name", "a")
    assert _state(chained.build()) == _state(stepwise.build())


def test_derived_builders_share_the_id_counter():
    b1 = Builder.new(Monster).with_sequential_ids("id")
    b2 = b1.with_("age", -1)
    ids = [b1.build().id, b1.build().id, b2.build().id, b2.build().id, b1.build().id]
    assert ids == [1, 2, 3, 4, 5]


def test_independent_roots_start_their_own_counters():
    def monsters() -> Builder:
        return Builder.new(Monster).with_sequential_ids("id")

    assert [m.id for m in monsters().build_many(2)] == [1, 2]
    assert [m.id for m in monsters().build_many(2)] == [1, 2]


def test_post_build_steps_run_after_every_blueprint_step():
    seen = []
    b = (
        Builder.new(Monster)
        .with_post_build_setup(lambda m: seen.append(("post", m.age)))
        .with_setup(lambda m: seen.append(("setup", m.age)))
        .with_("age", 9)
    )
    b.build()
    assert seen == [("setup", 0), ("post", 9)]


def test_pre_build_steps_run_first_newest_first():
    order = []
    b = (
        Builder.new(Monster)
        .with_setup(lambda m: order.append("setup"))
        .with_pre_build_setup(lambda m: order.append("pre-1"))
        .with_pre_build_setup(lambda m: order.append("pre-2"))
        .with_post_build_setup(lambda m: order.append("post"))
    )
    b.build()
    assert order == ["pre-2", "pre-1", "setup", "post"]


def test_build_many_finishes_each_instance_before_the_next():
    order = []
    b = (
        Builder.new(Monster)
        .with_sequential_ids("id")
        .with_setup(lambda m: order.append(("setup", m.id)))
        .with_post_build_setup(lambda m: order.append(("post", m.id)))
    )
    b.build_many(2)
    assert order == [("setup", 1), ("post", 1), ("setup", 2), ("post", 2)]


def test_build_from_base_applies_the_chain_to_an_existing_instance():
    m = Monster()
    m.name = "kept"
    out = Builder.new(Monster).with_("age", 3).build_from_base(m)
    assert out is m
    assert m.age == 3 and m.name == "kept"


def test_build_from_base_rejects_other_types():
    with pytest.raises(TypeError):
        Builder.new(Monster).build_from_base(object())


def test_failing_step_aborts_build_many():
    calls = []

    def explode(m):
        calls.append(m)
        if len(calls) == 2:
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        Builder.new(Monster).with_setup(explode).build_many(3)
    assert len(calls) == 2


def test_setup_actions_must_be_callable():
    with pytest.raises(ConfigError):
        Builder.new(Monster).with_setup("nope")  # type: ignore[arg-type]


def test_repr_mentions_target_and_step_counts():
    b = Builder.new(Monster).with_("age", 1).with_post_build_setup(lambda m: None)
    assert repr(b) == "Builder[Monster](pre=0, steps=1, post=1)"
