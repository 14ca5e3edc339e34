"""
Tests for arbiter panel selection.
"""
import logging
import pytest

from tourney.arbiters import has_conflict, is_eligible, panel_size, select_panel
from tourney.errors import InvalidArgumentError, NotFoundError
from tourney.models import Role, UserRecord


def ids(panel):
    return [u.id for u in panel]


class TestPanelSize:
    """Tests for panel_size."""

    @pytest.mark.parametrize("priority,size", [('URGENT', 5), ('HIGH', 3), ('MEDIUM', 2), ('LOW', 1)])
    def test_default_sizes(self, priority, size):
        """Test default panel sizes by priority."""
        assert panel_size(priority) == size

    def test_policy_override(self, policy):
        """Test panel sizes come from the policy."""
        policy['panel_sizes']['LOW'] = 2
        assert panel_size('LOW', policy) == 2

    def test_unknown_priority(self):
        """Test an unknown priority is an invalid argument."""
        with pytest.raises(InvalidArgumentError):
            panel_size('SEVERE')


class TestEligibility:
    """Tests for is_eligible and has_conflict."""

    def test_roles(self, policy):
        """Test only arbiter roles are eligible."""
        assert is_eligible(UserRecord('a', role=Role.ADMIN), policy)
        assert is_eligible(UserRecord('m', role=Role.MODERATOR), policy)
        assert not is_eligible(UserRecord('p', role=Role.PLAYER), policy)

    def test_banned_and_inactive(self, policy):
        """Test banned or inactive users are never eligible."""
        assert not is_eligible(UserRecord('b', role=Role.ADMIN, is_banned=True), policy)
        assert not is_eligible(UserRecord('i', role=Role.ADMIN, is_active=False), policy)

    def test_conflict(self):
        """Test a user listed in the exclusions is conflicted, with a reason."""
        conflicted, reason = has_conflict(UserRecord('mod1'), ['reporter', 'mod1'])
        assert conflicted
        assert reason

    def test_no_conflict(self):
        """Test an unrelated user has no conflict."""
        assert has_conflict(UserRecord('mod1'), ['reporter']) == (False, None)


class TestSelectPanel:
    """Tests for select_panel."""

    def test_admins_first(self, identity):
        """Test admins rank ahead of moderators; ties keep listing order."""
        panel = select_panel(identity.list_users(), 'HIGH')
        assert ids(panel) == ['admin1', 'admin2', 'mod1']

    def test_urgent_panel(self, identity):
        """Test an urgent dispute draws five arbiters."""
        panel = select_panel(identity.list_users(), 'URGENT')
        assert ids(panel) == ['admin1', 'admin2', 'mod1', 'mod2', 'mod3']

    def test_excluded_users_skipped(self, identity):
        """Test the reporter and match participants never judge."""
        panel = select_panel(identity.list_users(), 'HIGH', exclude_ids=['admin1', 'mod1'])
        assert ids(panel) == ['admin2', 'mod2', 'mod3']

    def test_ineligible_never_picked(self, identity):
        """Test banned, inactive and player accounts are skipped even for a big panel."""
        panel = select_panel(identity.list_users(), 'URGENT', exclude_ids=['mod1', 'mod2'])
        assert 'mod-banned' not in ids(panel)
        assert 'admin-inactive' not in ids(panel)
        assert 'player1' not in ids(panel)

    def test_short_panel_warns(self, caplog):
        """Test fewer eligible arbiters than seats gives a smaller panel and a warning."""
        users = [UserRecord('mod1', role=Role.MODERATOR), UserRecord('admin1', role=Role.ADMIN)]
        with caplog.at_level(logging.WARNING):
            panel = select_panel(users, 'URGENT')
        assert ids(panel) == ['admin1', 'mod1']
        assert 'Only 2 of 5 arbiters' in caplog.text

    def test_nobody_eligible(self):
        """Test an empty pool raises NotFoundError."""
        users = [UserRecord('p1', role=Role.PLAYER), UserRecord('mod1', role=Role.MODERATOR)]
        with pytest.raises(NotFoundError):
            select_panel(users, 'LOW', exclude_ids=['mod1'])

    def test_no_duplicates(self, identity):
        """Test a panel never repeats an arbiter."""
        panel = select_panel(identity.list_users(), 'URGENT')
        assert len(set(ids(panel))) == len(panel)
