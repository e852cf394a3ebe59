def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'healthy'


def test_index_lists_endpoints(client):
    body = client.get('/').get_json()
    assert body['message'] == 'ProjeX API'
    assert body['endpoints']['tasks']['list']['path'] == '/task'


def test_security_headers(client):
    resp = client.get('/health')
    assert resp.headers['X-Content-Type-Options'] == 'nosniff'
    assert resp.headers['X-Frame-Options'] == 'DENY'


def test_unknown_route_is_json_404(client):
    resp = client.get('/nowhere')
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'not_found'


def test_wrong_method_is_json_405(client):
    resp = client.patch('/projects')
    assert resp.status_code == 405


def test_unexpected_error_hides_detail(app):
    @app.route('/boom')
    def boom():
        raise RuntimeError('database password is hunter2')

    resp = app.test_client().get('/boom')
    assert resp.status_code == 500
    assert resp.get_json() == {'message': 'An unexpected error occurred. Please try again later.'}
    assert 'hunter2' not in resp.get_data(as_text=True)
