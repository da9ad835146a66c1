"""
Tests for entities, zones, resources and targeting.

Tests cover:
- Zone limits and battlefield overflow
- Structural cloning and owner back-references
- Resource pools, restore and overload
- Stealth and Taunt target filtering
"""

import copy

import pytest

from ccg.game.constants import BATTLEFIELD_LIMIT, HAND_LIMIT, MAX_RESOURCES
from ccg.game.entities import Card, Hero, IllegalActionError, Player, ensure_owner_links
from ccg.game.resources import ResourceSystem, TurnSystem
from ccg.game.targeting import attack_targets, auto_select_target, select_targets


def make_ally(name='Footman', attack=1, health=2, **kwargs):
    return Card(name, attack=attack, health=health, **kwargs)


class TestZones:
    """Test zone containers and player helpers."""

    def test_hand_limit(self):
        """Test the hand refuses cards past its limit."""
        player = Player('A')
        for i in range(HAND_LIMIT):
            assert player.hand.add(make_ally(f'Unit{i}')) is not None

        assert player.hand.add(make_ally('Extra')) is None
        assert len(player.hand) == HAND_LIMIT

    def test_battlefield_overflow_removes_oldest(self):
        """Test the oldest ally is removed when the board is over its limit."""
        player = Player('A')
        allies = [make_ally(f'Unit{i}') for i in range(BATTLEFIELD_LIMIT + 1)]
        removed = []
        for ally in allies:
            removed.extend(player.add_to_battlefield(ally))

        assert removed == [allies[0]]
        assert allies[0] in player.graveyard.cards
        assert player.allies() == allies[1:]

    def test_spells_cannot_stay_on_battlefield(self):
        """Test putting a spell on the battlefield is rejected."""
        player = Player('A')
        spell = Card('Zap', card_type='spell', cost=1)

        with pytest.raises(IllegalActionError):
            player.add_to_battlefield(spell)

    def test_characters_lists_hero_first(self):
        """Test characters() is hero then living allies."""
        player = Player('A')
        alive = make_ally('Alive')
        dead = make_ally('Dead')
        dead.dead = True
        player.add_to_battlefield(alive)
        player.add_to_battlefield(dead)

        assert player.characters() == [player.hero, alive]


class TestCloning:
    """Test structural and constructor clones."""

    def test_deepcopy_drops_owner_until_relinked(self):
        """Test structural clones lose back-references and relinking restores them."""
        player = Player('A')
        player.hand.add(make_ally())
        ensure_owner_links(player)

        clone = copy.deepcopy(player)
        assert clone.hand.cards[0].owner is None
        assert clone.hero.owner is None

        ensure_owner_links(clone)
        assert clone.hand.cards[0].owner is clone
        assert clone.hero.owner is clone
        # Idempotent
        ensure_owner_links(clone)
        assert clone.hero.owner is clone

    def test_constructor_clone_keeps_identity_and_state(self):
        """Test clone() builds new instances with the same ids and stats."""
        player = Player('A')
        ally = make_ally('Knight', attack=3, health=5)
        ally.health = 2
        ally.attacks_used = 1
        player.add_to_battlefield(ally)

        clone = player.clone()
        cloned_ally = clone.battlefield.cards[0]

        assert cloned_ally is not ally
        assert cloned_ally.id == ally.id
        assert (cloned_ally.health, cloned_ally.max_health) == (2, 5)
        assert cloned_ally.attacks_used == 1
        assert cloned_ally.owner is clone
        assert clone.hero.id == player.hero.id


class TestResources:
    """Test ResourceSystem pools and overload."""

    def test_pool_defaults_to_available(self):
        """Test an untouched pool equals min(turn, cap)."""
        resources = ResourceSystem(TurnSystem(turn=3))
        player = Player('A')

        assert resources.pool(player) == 3

    def test_available_is_capped(self):
        """Test available resources never exceed the cap."""
        resources = ResourceSystem(TurnSystem(turn=15))

        assert resources.available() == MAX_RESOURCES

    def test_pay_and_refuse(self):
        """Test paying reduces the pool and overspending fails."""
        resources = ResourceSystem(TurnSystem(turn=3))
        player = Player('A')

        assert resources.pay(player, 2)
        assert resources.pool(player) == 1
        assert resources.pay(player, 2) is False
        assert resources.pool(player) == 1

    def test_start_turn_applies_overload(self):
        """Test pending overload reduces the next pool and is then cleared."""
        resources = ResourceSystem(TurnSystem(turn=4))
        player = Player('A')
        resources.add_overload_next_turn(player, 2)

        assert resources.start_turn(player) == 2
        assert resources.pending_overload(player) == 0

    def test_restore_caps_at_available(self):
        """Test restore refills but never past the available cap."""
        resources = ResourceSystem(TurnSystem(turn=5))
        player = Player('A')
        resources.set_pool(player, 1)

        assert resources.restore(player, 2) == 2
        assert resources.pool(player) == 3
        resources.restore(player, 10)
        assert resources.pool(player) == 5


class TestTargeting:
    """Test Stealth/Taunt filtering and auto-targeting."""

    def test_stealth_is_hidden(self):
        """Test stealthed allies are not targetable."""
        sneaky = make_ally('Rogue', keywords=['Stealth'])
        plain = make_ally('Plain')

        assert select_targets([sneaky, plain]) == [plain]
        assert select_targets([sneaky, plain], allow_stealth_targeting=True) == [sneaky, plain]

    def test_taunt_is_forced(self):
        """Test a Taunt ally hides the hero and other allies from attacks."""
        enemy = Player('B')
        taunt = make_ally('Guard', keywords=['Taunt'])
        other = make_ally('Other')
        enemy.add_to_battlefield(taunt)
        enemy.add_to_battlefield(other)

        assert attack_targets(enemy) == [taunt]

    def test_no_face_excludes_hero(self):
        """Test can_hit_face=False leaves only allies."""
        enemy = Player('B')
        ally = make_ally('Other')
        enemy.add_to_battlefield(ally)

        assert attack_targets(enemy, can_hit_face=False) == [ally]
        assert attack_targets(enemy) == [enemy.hero, ally]

    def test_auto_target_prefers_hint(self):
        """Test a preferred id wins over heuristics."""
        me, enemy = Player('A'), Player('B')
        weak = make_ally('Weak', attack=1, health=1)
        enemy.add_to_battlefield(weak)
        effect = {'type': 'damage', 'target': 'enemy', 'amount': 1}

        chosen = auto_select_target([enemy.hero, weak], effect, me, preferred=[enemy.hero.id])
        assert chosen is enemy.hero

    def test_auto_target_damage_kills_ally(self):
        """Test damage goes to an ally it can kill before the hero."""
        me, enemy = Player('A'), Player('B')
        weak = make_ally('Weak', attack=2, health=2)
        enemy.add_to_battlefield(weak)
        effect = {'type': 'damage', 'target': 'enemy', 'amount': 2}

        assert auto_select_target([enemy.hero, weak], effect, me) is weak

    def test_auto_target_heal_picks_injured_friend(self):
        """Test heals go to the most injured friendly character."""
        me, enemy = Player('A'), Player('B')
        me.hero.health = 20
        effect = {'type': 'heal', 'target': 'character', 'amount': 5}

        assert auto_select_target([me.hero, enemy.hero], effect, me) is me.hero


def test_hero_total_attack_includes_equipment():
    """Test hero attack sums base, temporary and equipment attack."""
    from ccg.game.entities import Equipment

    hero = Hero(attack=1)
    hero.equip(Equipment('Sword', attack=2, durability=2))
    hero.temp_attack = 1

    assert hero.total_attack() == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
