from datetime import datetime

import pytest


def _ts(value):
    return datetime.fromisoformat(value)


def test_end_to_end_ada_flow(client):
    resp = client.post('/auth/register', json={
        'name': 'Ada', 'email': 'ada@x.com', 'password': 'secret1'
    })
    assert resp.status_code == 201
    body = resp.get_json()
    token = body['token']
    ada_id = body['user']['id']
    auth = {'Authorization': f'Bearer {token}'}

    resp = client.post('/projects', json={'title': 'Launch'}, headers=auth)
    assert resp.status_code == 201
    project = resp.get_json()
    assert project['ownerId'] == ada_id

    resp = client.post('/task', json={'title': 'Write spec', 'projectId': project['id']}, headers=auth)
    assert resp.status_code == 201
    task = resp.get_json()
    assert task['status'] == 'TODO'
    assert task['ownerId'] == ada_id
    assert task['projectId'] == project['id']

    resp = client.put(f"/task/{task['id']}", json={'status': 'DONE'}, headers=auth)
    assert resp.status_code == 200
    done = resp.get_json()
    assert done['status'] == 'DONE'
    assert _ts(done['updatedAt']) > _ts(task['updatedAt'])


@pytest.mark.parametrize('start, target', [
    ('DONE', 'TODO'),
    ('DONE', 'IN_PROGRESS'),
    ('TODO', 'DONE'),
    ('IN_PROGRESS', 'TODO'),
    ('TODO', 'TODO'),
])
def test_any_to_any_transition(signup, project_for, task_for, start, target):
    ada, _, _ = signup()
    project = project_for(ada)
    task = task_for(ada, project['id'], status=start)
    assert task['status'] == start

    resp = ada.put(f"/task/{task['id']}", json={'status': target})
    assert resp.status_code == 200
    updated = resp.get_json()
    assert updated['status'] == target
    assert _ts(updated['updatedAt']) > _ts(task['updatedAt'])

    assert ada.get(f"/task/{task['id']}").get_json()['status'] == target


def test_updated_at_strictly_increases_over_repeated_updates(signup, project_for, task_for):
    ada, _, _ = signup()
    project = project_for(ada)
    task = task_for(ada, project['id'])

    stamps = [_ts(task['updatedAt'])]
    for status in ['IN_PROGRESS', 'DONE', 'TODO', 'DONE']:
        resp = ada.put(f"/task/{task['id']}", json={'status': status})
        stamps.append(_ts(resp.get_json()['updatedAt']))
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


def test_in_review_is_not_a_status(signup, project_for, task_for):
    ada, _, _ = signup()
    project = project_for(ada)
    task = task_for(ada, project['id'])
    resp = ada.put(f"/task/{task['id']}", json={'status': 'IN_REVIEW'})
    assert resp.status_code == 400
    assert 'status' in resp.get_json()['errors']


def test_create_task_requires_token(client):
    resp = client.post('/task', json={'title': 'Write spec', 'projectId': 1})
    assert resp.status_code == 401


def test_create_task_validates_body(signup):
    ada, _, _ = signup()
    resp = ada.post('/task', json={'title': 'ab'})
    assert resp.status_code == 400
    errors = resp.get_json()['errors']
    assert 'title' in errors
    assert 'projectId' in errors


def test_create_task_in_missing_project_is_404(signup):
    ada, _, _ = signup()
    resp = ada.post('/task', json={'title': 'Write spec', 'projectId': 9999})
    assert resp.status_code == 404
    assert resp.get_json() == {'message': 'Project not found'}


def test_create_task_with_missing_assignee_is_404(signup, project_for):
    ada, _, _ = signup()
    project = project_for(ada)
    resp = ada.post('/task', json={'title': 'Write spec', 'projectId': project['id'], 'assigneeId': 9999})
    assert resp.status_code == 404


def test_list_tasks_is_public_with_filters(client, signup, project_for, task_for):
    ada, _, _ = signup()
    bob, bob_user, _ = signup(name='Bob', email='bob@x.com')
    launch = project_for(ada, title='Launch')
    other = project_for(ada, title='Other')
    first = task_for(ada, launch['id'], title='First task')
    second = task_for(ada, launch['id'], title='Second task', status='DONE', assigneeId=bob_user['id'])
    third = task_for(ada, other['id'], title='Third task')

    all_tasks = client.get('/task').get_json()
    assert [t['id'] for t in all_tasks] == [third['id'], second['id'], first['id']]
    assert all_tasks[1]['assignee']['name'] == 'Bob'
    assert all_tasks[0]['project']['title'] == 'Other'

    done = client.get('/task?status=DONE').get_json()
    assert [t['id'] for t in done] == [second['id']]

    in_launch = client.get(f"/task?projectId={launch['id']}").get_json()
    assert {t['id'] for t in in_launch} == {first['id'], second['id']}

    bobs = client.get(f"/task?assigneeId={bob_user['id']}").get_json()
    assert [t['id'] for t in bobs] == [second['id']]

    assert client.get('/task?status=IN_REVIEW').status_code == 400


def test_get_task_not_found(client):
    resp = client.get('/task/9999')
    assert resp.status_code == 404
    assert resp.get_json() == {'message': 'Task not found'}


def test_update_and_delete_missing_task_is_404(signup):
    ada, _, _ = signup()
    assert ada.put('/task/9999', json={'status': 'DONE'}).status_code == 404
    assert ada.delete('/task/9999').status_code == 404


def test_delete_task(client, signup, project_for, task_for):
    ada, _, _ = signup()
    project = project_for(ada)
    task = task_for(ada, project['id'])
    resp = ada.delete(f"/task/{task['id']}")
    assert resp.status_code == 200
    assert resp.get_json() == {'message': 'Task deleted'}
    assert client.get(f"/task/{task['id']}").status_code == 404


def test_reassign_task(signup, project_for, task_for):
    ada, _, _ = signup()
    _, bob_user, _ = signup(name='Bob', email='bob@x.com')
    project = project_for(ada)
    task = task_for(ada, project['id'])

    resp = ada.put(f"/task/{task['id']}", json={'assigneeId': bob_user['id']})
    assert resp.status_code == 200
    assert resp.get_json()['assigneeId'] == bob_user['id']

    resp = ada.put(f"/task/{task['id']}", json={'assigneeId': None})
    assert resp.get_json()['assigneeId'] is None


# ============================================
# Ownership rules (default mode)
# ============================================

def test_stranger_cannot_update_or_delete_task(signup, project_for, task_for):
    ada, _, _ = signup()
    bob, _, _ = signup(name='Bob', email='bob@x.com')
    project = project_for(ada)
    task = task_for(ada, project['id'])

    assert bob.put(f"/task/{task['id']}", json={'status': 'DONE'}).status_code == 403
    assert bob.delete(f"/task/{task['id']}").status_code == 403


def test_assignee_can_move_but_not_delete(signup, project_for, task_for):
    ada, _, _ = signup()
    bob, bob_user, _ = signup(name='Bob', email='bob@x.com')
    project = project_for(ada)
    task = task_for(ada, project['id'], assigneeId=bob_user['id'])

    assert bob.put(f"/task/{task['id']}", json={'status': 'IN_PROGRESS'}).status_code == 200
    assert bob.delete(f"/task/{task['id']}").status_code == 403


def test_project_owner_can_delete_tasks_of_others(signup, project_for, task_for):
    ada, _, _ = signup()
    bob, _, _ = signup(name='Bob', email='bob@x.com')
    project = project_for(ada)
    task = task_for(bob, project['id'])

    assert ada.put(f"/task/{task['id']}", json={'status': 'DONE'}).status_code == 200
    assert ada.delete(f"/task/{task['id']}").status_code == 200


def test_admin_can_modify_any_task(signup, project_for, task_for):
    ada, _, _ = signup()
    admin, _, _ = signup(name='Root', email='root@x.com', adminKey='testing-admin-key')
    project = project_for(ada)
    task = task_for(ada, project['id'])

    assert admin.put(f"/task/{task['id']}", json={'status': 'DONE'}).status_code == 200
    assert admin.delete(f"/task/{task['id']}").status_code == 200


HUGE_ID = 2**70


def test_task_ids_beyond_integer_range_are_not_found(signup):
    ada, _, _ = signup()
    assert ada.get(f'/task/{HUGE_ID}').status_code == 404
    assert ada.put(f'/task/{HUGE_ID}', json={'status': 'DONE'}).status_code == 404
    resp = ada.delete(f'/task/{HUGE_ID}')
    assert resp.status_code == 404
    assert resp.get_json() == {'message': 'Task not found'}


@pytest.mark.parametrize('name', ['projectId', 'assigneeId'])
def test_list_filter_beyond_integer_range_is_400(client, name):
    resp = client.get(f'/task?{name}={HUGE_ID}')
    assert resp.status_code == 400
    assert name in resp.get_json()['errors']


def test_create_task_with_out_of_range_ids_is_400(signup, project_for):
    ada, _, _ = signup()
    project = project_for(ada)

    resp = ada.post('/task', json={'title': 'Write spec', 'projectId': HUGE_ID})
    assert resp.status_code == 400
    assert 'projectId' in resp.get_json()['errors']

    resp = ada.post('/task', json={'title': 'Write spec', 'projectId': project['id'], 'assigneeId': HUGE_ID})
    assert resp.status_code == 400
    assert 'assigneeId' in resp.get_json()['errors']


def test_fractional_ids_are_rejected(signup, project_for, task_for):
    ada, ada_user, _ = signup()
    project = project_for(ada)

    resp = ada.post('/task', json={'title': 'Write spec', 'projectId': project['id'] + 0.9})
    assert resp.status_code == 400
    assert 'projectId' in resp.get_json()['errors']

    resp = ada.post('/task', json={
        'title': 'Write spec', 'projectId': project['id'], 'assigneeId': ada_user['id'] + 0.7
    })
    assert resp.status_code == 400
    assert 'assigneeId' in resp.get_json()['errors']

    task = task_for(ada, project['id'])
    resp = ada.put(f"/task/{task['id']}", json={'assigneeId': 1.5})
    assert resp.status_code == 400
    assert ada.get('/task').get_json()[0]['assigneeId'] is None


def test_numeric_string_ids_are_rejected(signup, project_for):
    ada, _, _ = signup()
    project = project_for(ada)
    resp = ada.post('/task', json={'title': 'Write spec', 'projectId': str(project['id'])})
    assert resp.status_code == 400
