import uuid

import pytest

from momentum_journal.core.errors import GoalLinkError
from momentum_journal.goals.linking import (
    GoalNode,
    check_link,
    check_type_change,
    check_unlink,
    normalize_create,
    validate_parent_assignment,
)
from momentum_journal.goals.models import Goal

USER = uuid.uuid4()


def node(type="short-term", parent=None, user=USER):
    return GoalNode(id=uuid.uuid4(), user_id=user, type=type, parent_goal_id=parent)


class TestCheckLink:
    def test_valid_link(self):
        check_link(node("short-term"), node("long-term"), child_has_children=False)

    def test_missing_child(self):
        with pytest.raises(GoalLinkError) as exc:
            check_link(None, node("long-term"), False)
        assert exc.value.code == "GOAL_NOT_FOUND"
        assert exc.value.status_code == 404

    def test_self_link(self):
        goal = node("short-term")
        with pytest.raises(GoalLinkError) as exc:
            check_link(goal, goal, False)
        assert exc.value.code == "SELF_LINK_NOT_ALLOWED"
        assert exc.value.status_code == 400

    def test_long_term_child_rejected(self):
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("long-term"), node("long-term"), False)
        assert exc.value.code == "CHILD_NOT_SHORT_TERM"

    def test_already_linked_to_same_parent(self):
        parent = node("long-term")
        child = node("short-term", parent=parent.id)
        with pytest.raises(GoalLinkError) as exc:
            check_link(child, parent, False)
        assert exc.value.code == "GOAL_ALREADY_LINKED"

    def test_relinking_to_another_parent_is_allowed(self):
        child = node("short-term", parent=uuid.uuid4())
        check_link(child, node("long-term"), False)

    def test_parent_with_children_cannot_become_child(self):
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("long-term"), node("long-term"), child_has_children=True)
        assert exc.value.code == "GOAL_HAS_CHILDREN"

    def test_missing_parent(self):
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("short-term"), None, False)
        assert exc.value.code == "PARENT_NOT_FOUND"
        assert exc.value.status_code == 404

    def test_parent_of_other_user_reported_as_missing(self):
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("short-term"), node("long-term", user=uuid.uuid4()), False)
        assert exc.value.code == "PARENT_NOT_FOUND"

    def test_short_term_parent(self):
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("short-term"), node("short-term"), False)
        assert exc.value.code == "PARENT_NOT_LONG_TERM"

    def test_checks_run_in_order(self):
        # both a long-term child and a short-term parent; the child is reported first,
        # and its children before its type
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("long-term"), node("short-term"), False)
        assert exc.value.code == "CHILD_NOT_SHORT_TERM"
        with pytest.raises(GoalLinkError) as exc:
            check_link(node("long-term"), node("short-term"), True)
        assert exc.value.code == "GOAL_HAS_CHILDREN"


def test_check_unlink_missing_goal():
    with pytest.raises(GoalLinkError) as exc:
        check_unlink(None)
    assert exc.value.code == "GOAL_NOT_FOUND"
    check_unlink(node())


class TestTypeChange:
    def test_same_type_is_noop(self):
        check_type_change(node("short-term", parent=uuid.uuid4()), "short-term")

    def test_linked_goal_cannot_become_long_term(self):
        with pytest.raises(GoalLinkError) as exc:
            check_type_change(node("short-term", parent=uuid.uuid4()), "long-term")
        assert exc.value.code == "TYPE_CHANGE_BLOCKED_HAS_PARENT"
        assert exc.value.status_code == 400

    def test_unlinked_goal_can_become_long_term(self):
        check_type_change(node("short-term"), "long-term")

    def test_parent_with_children_cannot_become_short_term(self):
        with pytest.raises(GoalLinkError) as exc:
            check_type_change(node("long-term"), "short-term", has_children=True)
        assert exc.value.code == "GOAL_HAS_CHILDREN"


def test_normalize_create_drops_parent_for_long_term():
    parent_id = uuid.uuid4()
    assert normalize_create("long-term", parent_id) is None
    assert normalize_create("short-term", parent_id) == parent_id
    assert normalize_create("short-term", None) is None


class TestParentAssignment:
    def test_no_parent_always_valid(self):
        validate_parent_assignment(node("long-term"), None)

    def test_long_term_with_parent(self):
        with pytest.raises(GoalLinkError):
            validate_parent_assignment(node("long-term", parent=uuid.uuid4()), node("long-term"))

    def test_dangling_reference(self):
        with pytest.raises(GoalLinkError) as exc:
            validate_parent_assignment(node("short-term", parent=uuid.uuid4()), None)
        assert exc.value.code == "PARENT_NOT_FOUND"


class TestStorageHooks:
    def _goal(self, db, type, parent_goal_id=None, user_id=USER):
        goal = Goal(id=uuid.uuid4(), user_id=user_id, title=f"{type} goal", type=type, parent_goal_id=parent_goal_id)
        db.add(goal)
        db.commit()
        return goal

    def test_insert_under_short_term_parent_rejected(self, db):
        parent = self._goal(db, "short-term")
        with pytest.raises(GoalLinkError) as exc:
            self._goal(db, "short-term", parent_goal_id=parent.id)
        assert exc.value.code == "PARENT_NOT_LONG_TERM"
        db.rollback()

    def test_insert_under_foreign_parent_rejected(self, db):
        parent = self._goal(db, "long-term", user_id=uuid.uuid4())
        with pytest.raises(GoalLinkError) as exc:
            self._goal(db, "short-term", parent_goal_id=parent.id)
        assert exc.value.code == "PARENT_NOT_FOUND"
        db.rollback()

    def test_update_to_long_term_while_linked_rejected(self, db):
        parent = self._goal(db, "long-term")
        child = self._goal(db, "short-term", parent_goal_id=parent.id)
        child.type = "long-term"
        with pytest.raises(GoalLinkError) as exc:
            db.commit()
        assert exc.value.code == "TYPE_CHANGE_BLOCKED_HAS_PARENT"
        db.rollback()

    def test_valid_link_is_stored(self, db):
        parent = self._goal(db, "long-term")
        child = self._goal(db, "short-term", parent_goal_id=parent.id)
        assert db.get(Goal, child.id).parent_goal_id == parent.id


class TestLinkingApi:
    def test_link_lifecycle(self, client, auth_headers, make_goal):
        parent = make_goal("Run a marathon", "long-term")
        child = make_goal("Run 10k", "short-term")

        resp = client.post(f"/goals/{child['id']}/link", json={"parentGoalId": parent["id"]}, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["parentGoalId"] == parent["id"]

        resp = client.post(f"/goals/{child['id']}/link", json={"parentGoalId": parent["id"]}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "GOAL_ALREADY_LINKED"

        resp = client.patch(f"/goals/{child['id']}", json={"type": "long-term"}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "TYPE_CHANGE_BLOCKED_HAS_PARENT"

        resp = client.delete(f"/goals/{child['id']}/link", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["parentGoalId"] is None

        resp = client.patch(f"/goals/{child['id']}", json={"type": "long-term"}, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["type"] == "long-term"

    def test_link_info(self, client, auth_headers, make_goal):
        parent = make_goal("Learn Spanish", "long-term")
        first = make_goal("Finish A1", parentGoalId=parent["id"])
        second = make_goal("Finish A2", parentGoalId=parent["id"])

        resp = client.get(f"/goals/{parent['id']}/link", headers=auth_headers)
        data = resp.json()["data"]
        assert data["parentGoal"] is None
        assert {g["id"] for g in data["childGoals"]} == {first["id"], second["id"]}

        resp = client.get(f"/goals/{first['id']}/link", headers=auth_headers)
        assert resp.json()["data"]["parentGoal"]["id"] == parent["id"]

    def test_self_link(self, client, auth_headers, make_goal):
        goal = make_goal()
        resp = client.post(f"/goals/{goal['id']}/link", json={"parentGoalId": goal["id"]}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "SELF_LINK_NOT_ALLOWED"

    def test_goal_with_children_cannot_become_child(self, client, auth_headers, make_goal):
        parent = make_goal("Write a novel", "long-term")
        make_goal("Outline chapters", parentGoalId=parent["id"])
        other = make_goal("Become an author", "long-term")

        resp = client.post(f"/goals/{parent['id']}/link", json={"parentGoalId": other["id"]}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "GOAL_HAS_CHILDREN"

        resp = client.get(f"/goals/{parent['id']}", headers=auth_headers)
        assert resp.json()["data"]["parentGoalId"] is None

    def test_parent_must_be_long_term(self, client, auth_headers, make_goal):
        a = make_goal("A")
        b = make_goal("B")
        resp = client.post(f"/goals/{a['id']}/link", json={"parentGoalId": b["id"]}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "PARENT_NOT_LONG_TERM"

    def test_parent_of_other_user_not_found(self, client, auth_headers, other_headers, make_goal):
        foreign = make_goal("Theirs", "long-term", headers=other_headers)
        mine = make_goal("Mine")
        resp = client.post(f"/goals/{mine['id']}/link", json={"parentGoalId": foreign["id"]}, headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "PARENT_NOT_FOUND"

    def test_unknown_goal(self, client, auth_headers, make_goal):
        parent = make_goal("P", "long-term")
        resp = client.post(f"/goals/{uuid.uuid4()}/link", json={"parentGoalId": parent["id"]}, headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "GOAL_NOT_FOUND"

    def test_create_with_short_term_parent_rejected(self, client, auth_headers, make_goal):
        parent = make_goal("Short")
        resp = client.post(
            "/goals",
            json={"title": "Child", "type": "short-term", "parentGoalId": parent["id"]},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "PARENT_NOT_LONG_TERM"

    def test_create_long_term_ignores_parent(self, make_goal):
        parent = make_goal("P", "long-term")
        goal = make_goal("Also long", "long-term", parentGoalId=parent["id"])
        assert goal["parentGoalId"] is None

    def test_parent_with_children_cannot_become_short_term(self, client, auth_headers, make_goal):
        parent = make_goal("P", "long-term")
        make_goal("C", parentGoalId=parent["id"])
        resp = client.patch(f"/goals/{parent['id']}", json={"type": "short-term"}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "GOAL_HAS_CHILDREN"

    def test_patch_long_term_with_parent_is_validation_error(self, client, auth_headers, make_goal):
        parent = make_goal("P", "long-term")
        goal = make_goal("C")
        resp = client.patch(
            f"/goals/{goal['id']}",
            json={"type": "long-term", "parentGoalId": parent["id"]},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_patch_unlink_and_promote_together(self, client, auth_headers, make_goal):
        parent = make_goal("P", "long-term")
        child = make_goal("C", parentGoalId=parent["id"])
        resp = client.patch(
            f"/goals/{child['id']}",
            json={"type": "long-term", "parentGoalId": None},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["parentGoalId"] is None
        assert resp.json()["data"]["type"] == "long-term"

    def test_deleting_parent_unlinks_children(self, client, auth_headers, make_goal):
        parent = make_goal("P", "long-term")
        child = make_goal("C", parentGoalId=parent["id"])
        assert client.delete(f"/goals/{parent['id']}", headers=auth_headers).status_code == 200
        resp = client.get(f"/goals/{child['id']}", headers=auth_headers)
        assert resp.json()["data"]["parentGoalId"] is None
