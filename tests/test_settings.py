import json

import numpy as np
import pytest

from lifesim.presets import get_preset, list_presets
from lifesim.settings import (
    DEFAULT_PALETTE,
    Interaction,
    InteractionTable,
    SimulationSettings,
)


def make_settings(n=2, **overrides):
    rng = np.random.RandomState(0)
    return SimulationSettings(
        species_colors=DEFAULT_PALETTE[:n],
        table=InteractionTable.random(n, rng),
        **overrides,
    )


def test_table_from_rows_accepts_mixed_cells():
    table = InteractionTable.from_rows([
        [{"dist": 10.0, "strength": 1.0}, (20.0, -0.5)],
        [Interaction(30.0, 0.25), [40.0, -2.0]],
    ])

    assert table.size == 2
    assert table[0, 1] == Interaction(20.0, -0.5)
    assert table[1, 0] == Interaction(30.0, 0.25)


def test_table_is_asymmetric():
    table = InteractionTable([[0.0, 10.0], [90.0, 0.0]], [[0.0, 1.0], [-2.0, 0.0]])

    assert table[0, 1] != table[1, 0]
    assert table[1, 0] == Interaction(90.0, -2.0)


@pytest.mark.parametrize("rows", [
    [[(1.0, 1.0), (1.0, 1.0)], [(1.0, 1.0)]],
    [[(1.0, 1.0), (1.0, 1.0)]],
    [],
])
def test_table_rejects_ragged_or_non_square_rows(rows):
    with pytest.raises(ValueError):
        InteractionTable.from_rows(rows)


def test_table_rejects_mismatched_or_non_finite_arrays():
    with pytest.raises(ValueError):
        InteractionTable(np.zeros((2, 2)), np.zeros((3, 3)))
    with pytest.raises(ValueError):
        InteractionTable([[np.nan]], [[1.0]])


def test_table_is_read_only():
    table = InteractionTable(np.zeros((2, 2)), np.zeros((2, 2)))
    with pytest.raises(ValueError):
        table.strength[0, 0] = 1.0

    changed = table.with_interaction(0, 1, Interaction(5.0, 0.5))
    assert changed[0, 1] == Interaction(5.0, 0.5)
    assert table[0, 1] == Interaction(0.0, 0.0)


def test_random_table_ranges():
    table = InteractionTable.random(7, np.random.RandomState(5))
    assert table.dist.shape == (7, 7)
    assert np.all((table.dist >= 0.0) & (table.dist < 100.0))
    assert np.all((table.strength >= -2.0) & (table.strength < 1.0))


def test_random_settings_use_default_palette():
    settings = SimulationSettings.random(np.random.RandomState(2))

    assert settings.species_count == len(DEFAULT_PALETTE)
    assert settings.species_color(0) == DEFAULT_PALETTE[0]
    assert settings.friction == 0.9
    assert settings.interaction_radius == 70.0
    assert settings.particle_radius == 5.0


@pytest.mark.parametrize("overrides", [
    {"friction": 1.0},
    {"friction": -0.1},
    {"interaction_radius": 0.0},
    {"particle_radius": -5.0},
])
def test_settings_reject_out_of_range_tunables(overrides):
    with pytest.raises(ValueError):
        make_settings(**overrides)


def test_settings_reject_palette_table_mismatch():
    with pytest.raises(ValueError):
        SimulationSettings(
            species_colors=DEFAULT_PALETTE[:3],
            table=InteractionTable.random(2),
        )
    with pytest.raises(ValueError):
        SimulationSettings(
            species_colors=[(1.0, 0.0, 0.0)] * 2,
            table=InteractionTable.random(2),
        )


def test_replace_builds_new_settings():
    settings = make_settings()
    slower = settings.replace(friction=0.5)

    assert slower is not settings
    assert slower.friction == 0.5
    assert settings.friction == 0.9
    assert slower.table is settings.table
    with pytest.raises(ValueError):
        settings.replace(friction=2.0)


def test_settings_record_field_names():
    record = make_settings(n=3).to_dict()

    assert set(record) == {"speciesRelations", "species", "friction",
                           "interactionDist", "particleSize"}
    assert len(record["speciesRelations"]) == 3
    assert set(record["speciesRelations"][0][0]) == {"dist", "strength"}
    assert all(len(color) == 4 for color in record["species"])


def test_save_and_load_settings(tmp_path):
    settings = make_settings(n=3, friction=0.94, interaction_radius=100.0)
    path = tmp_path / "nested" / "settings.json"

    settings.save(str(path))
    loaded = SimulationSettings.load(str(path))

    assert loaded == settings
    assert json.loads(path.read_text())["interactionDist"] == 100.0


def test_load_rejects_incomplete_record(tmp_path):
    path = tmp_path / "settings.json"
    record = make_settings().to_dict()
    del record["particleSize"]
    path.write_text(json.dumps(record))

    with pytest.raises(ValueError):
        SimulationSettings.load(str(path))


def test_load_or_random_falls_back_on_missing_file(tmp_path):
    settings = SimulationSettings.load_or_random(str(tmp_path / "missing.json"))
    assert settings.species_count == len(DEFAULT_PALETTE)


def test_load_or_random_falls_back_on_garbage(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")

    settings = SimulationSettings.load_or_random(str(path), np.random.RandomState(1))
    assert settings.species_count == len(DEFAULT_PALETTE)


def test_load_or_random_prefers_valid_file(tmp_path):
    path = tmp_path / "settings.json"
    saved = make_settings(n=2, friction=0.5)
    saved.save(str(path))

    assert SimulationSettings.load_or_random(str(path)) == saved


# ============================================================================
# Presets
# ============================================================================

def test_presets_build_valid_settings():
    for preset in list_presets():
        settings = preset.settings()
        assert settings.species_count == preset.n_species
        assert preset.dist.shape == preset.strength.shape


def test_unknown_preset_raises_error():
    with pytest.raises(ValueError):
        get_preset("does_not_exist")


def test_preset_needs_enough_colors():
    with pytest.raises(ValueError):
        get_preset("cyclic").settings(palette=DEFAULT_PALETTE[:2])


def test_preset_rejects_empty_palette():
    with pytest.raises(ValueError):
        get_preset("cyclic").settings(palette=[])
