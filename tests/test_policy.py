import pytest

from blogapi.aioweb import Forbidden, NotFound, Unauthenticated, ValidationError
from blogapi.policy import (
    ANONYMOUS, APPROVED, PENDING, Caller, Role,
    authorize_category_creation, authorize_post_mutation, can_mutate_post,
    can_view_comment, can_view_post, comment_status_filter, initial_comment_status,
    plan_post_update, post_status_filter, post_visibility_clause,
)

ALICE = Caller(id='alice', role=Role.AUTHOR)
BOB = Caller(id='bob', role=Role.AUTHOR)
ADMIN = Caller(id='root', role=Role.ADMIN)

DRAFT_BY_ALICE = {'id': 'p1', 'author_id': 'alice', 'status': 'draft', 'published_at': None}
PUBLISHED_BY_ALICE = {'id': 'p2', 'author_id': 'alice', 'status': 'published', 'published_at': 100}


def test_caller_from_claims():
    caller = Caller.from_claims({'id': 'u1', 'email': 'a@b.co', 'name': 'A', 'role': 'admin'})
    assert caller.is_authenticated and caller.is_admin
    assert Caller.from_claims({'id': 'u2'}).role is Role.AUTHOR
    assert Caller.from_claims({'id': 'u3', 'role': 'superuser'}).role is Role.AUTHOR
    assert not ANONYMOUS.is_authenticated


@pytest.mark.parametrize('caller, post, visible', [
    (ANONYMOUS, DRAFT_BY_ALICE, False),
    (ANONYMOUS, PUBLISHED_BY_ALICE, True),
    (ALICE, DRAFT_BY_ALICE, True),
    (BOB, DRAFT_BY_ALICE, False),
    (BOB, PUBLISHED_BY_ALICE, True),
    (ADMIN, DRAFT_BY_ALICE, True),
])
def test_can_view_post(caller, post, visible):
    assert can_view_post(caller, post) is visible


@pytest.mark.parametrize('caller, allowed', [
    (ANONYMOUS, False), (ALICE, True), (BOB, False), (ADMIN, True),
])
def test_can_mutate_post_ignores_status(caller, allowed):
    assert can_mutate_post(caller, DRAFT_BY_ALICE) is allowed
    assert can_mutate_post(caller, PUBLISHED_BY_ALICE) is allowed


def test_visibility_clause_per_role():
    assert post_visibility_clause(ADMIN) == (None, [])
    assert post_visibility_clause(ANONYMOUS) == ("p.status = ?", ['published'])
    clause, params = post_visibility_clause(ALICE, 'x')
    assert clause == "(x.author_id = ? OR x.status = ?)"
    assert params == ['alice', 'published']


def test_status_filter_only_for_admin_or_own_listing():
    assert post_status_filter(ADMIN, 'draft', None) == 'draft'
    assert post_status_filter(ALICE, 'draft', 'alice') == 'draft'
    assert post_status_filter(ALICE, 'draft', 'bob') is None
    assert post_status_filter(ALICE, 'draft', None) is None
    assert post_status_filter(ANONYMOUS, 'draft', None) is None
    assert post_status_filter(ADMIN, None, None) is None


def test_authorize_post_mutation_order():
    with pytest.raises(Unauthenticated):
        authorize_post_mutation(ANONYMOUS, None)
    with pytest.raises(NotFound):
        authorize_post_mutation(BOB, None)
    with pytest.raises(Forbidden):
        authorize_post_mutation(BOB, DRAFT_BY_ALICE)
    assert authorize_post_mutation(ADMIN, DRAFT_BY_ALICE) is DRAFT_BY_ALICE


def test_authorize_category_creation():
    with pytest.raises(Unauthenticated):
        authorize_category_creation(ANONYMOUS)
    with pytest.raises(Forbidden):
        authorize_category_creation(ALICE)
    assert authorize_category_creation(ADMIN) is ADMIN


def test_plan_post_update_title_regenerates_slug():
    changes = plan_post_update({'title': 'New Title!'}, now=500)
    assert changes == {'title': 'New Title!', 'slug': 'new-title', 'updated_at': 500}


def test_plan_post_update_publish_stamps_published_at():
    changes = plan_post_update({'status': 'published'}, now=500)
    assert changes['published_at'] == 500
    assert changes['status'] == 'published'


def test_plan_post_update_draft_leaves_published_at():
    changes = plan_post_update({'status': 'draft'}, now=500)
    assert 'published_at' not in changes
    assert 'published_at' not in plan_post_update({'content': 'edited'}, now=500)


def test_plan_post_update_without_known_fields_is_empty():
    assert plan_post_update({}, now=500) == {}
    assert plan_post_update({'color': 'red'}, now=500) == {}


def test_plan_post_update_featured_and_empty_title():
    assert plan_post_update({'featured': True}, now=1)['featured'] == 1
    assert plan_post_update({'featured': False}, now=1)['featured'] == 0
    with pytest.raises(ValidationError):
        plan_post_update({'title': '   '}, now=1)


def test_comment_filters():
    assert comment_status_filter(ANONYMOUS, 'pending') == APPROVED
    assert comment_status_filter(ALICE, None) == APPROVED
    assert comment_status_filter(ADMIN, 'pending') == 'pending'
    assert comment_status_filter(ADMIN, None) is None


def test_reply_visibility_depends_only_on_own_status():
    pending_reply = {'status': 'pending', 'parent_id': 'c1'}
    approved_reply = {'status': 'approved', 'parent_id': 'c1'}
    assert not can_view_comment(BOB, pending_reply)
    assert can_view_comment(ANONYMOUS, approved_reply)
    assert can_view_comment(ADMIN, pending_reply)


def test_initial_comment_status():
    assert initial_comment_status(ALICE, require_approval=True) == APPROVED
    assert initial_comment_status(ANONYMOUS, require_approval=True) == PENDING
    assert initial_comment_status(ANONYMOUS, require_approval=False) == APPROVED
