import requests


class ClientError(Exception):
    """Non-2xx response (status 0 when the server could not be reached)"""

    def __init__(self, status, message, body=None):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message
        self.body = body


class ProjexClient:
    """
    Thin HTTP client for the ProjeX API

    The session keeps the USER_TOKEN cookie set by login/register; the token
    from the response body is also sent as a Bearer header so the client
    works when the cookie is not returned (e.g. Secure cookie over plain http).
    """

    def __init__(self, base_url, session=None, timeout=30):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token = None

    def _request(self, method, endpoint, **kwargs):
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = kwargs.pop('headers', {})
        if self.token:
            headers.setdefault('Authorization', f'Bearer {self.token}')

        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ClientError(0, str(exc)) from exc

        try:
            body = resp.json()
        except ValueError:
            body = resp.text

        if not resp.ok:
            message = body.get('message') if isinstance(body, dict) else None
            raise ClientError(resp.status_code, message or resp.reason or 'Request failed', body)
        return body

    @staticmethod
    def _params(**params):
        return {key: value for key, value in params.items() if value is not None}

    # ========== Auth ==========

    def register(self, name, email, password, admin_key=None):
        payload = {'name': name, 'email': email, 'password': password}
        if admin_key:
            payload['adminKey'] = admin_key
        body = self._request('POST', 'auth/register', json=payload)
        self.token = body.get('token')
        return body

    def login(self, email, password):
        body = self._request('POST', 'auth/login', json={'email': email, 'password': password})
        self.token = body.get('token')
        return body

    def logout(self):
        self._request('POST', 'auth/logout')
        self.token = None
        self.session.cookies.clear()

    def me(self):
        return self._request('GET', 'auth/me')['user']

    # ========== Users ==========

    def list_users(self):
        return self._request('GET', 'users')['users']

    def get_user(self, user_id):
        return self._request('GET', f'users/{user_id}')['user']

    def update_user(self, user_id, **fields):
        return self._request('PUT', f'users/{user_id}', json=fields)['user']

    def delete_user(self, user_id):
        self._request('DELETE', f'users/{user_id}')

    # ========== Projects ==========

    def list_projects(self):
        return self._request('GET', 'projects')

    def get_project(self, project_id):
        return self._request('GET', f'projects/{project_id}')

    def create_project(self, title, description=None):
        payload = {'title': title}
        if description is not None:
            payload['description'] = description
        return self._request('POST', 'projects', json=payload)

    def update_project(self, project_id, **fields):
        return self._request('PUT', f'projects/{project_id}', json=fields)

    def delete_project(self, project_id):
        self._request('DELETE', f'projects/{project_id}')

    # ========== Tasks ==========

    def list_tasks(self, status=None, project_id=None, assignee_id=None):
        params = self._params(status=status, projectId=project_id, assigneeId=assignee_id)
        return self._request('GET', 'task', params=params)

    def get_task(self, task_id):
        return self._request('GET', f'task/{task_id}')

    def create_task(self, title, project_id, **fields):
        payload = {'title': title, 'projectId': project_id}
        payload.update(fields)
        return self._request('POST', 'task', json=payload)

    def update_task(self, task_id, **fields):
        return self._request('PUT', f'task/{task_id}', json=fields)

    def delete_task(self, task_id):
        self._request('DELETE', f'task/{task_id}')

    # ========== Views ==========

    def dashboard(self):
        return self._request('GET', 'views/dashboard')

    def board(self, project_id=None, search=None):
        return self._request('GET', 'views/board', params=self._params(projectId=project_id, search=search))

    def calendar(self, year=None, month=None):
        return self._request('GET', 'views/calendar', params=self._params(year=year, month=month))

    def reports(self, range_name='all'):
        return self._request('GET', 'views/reports', params={'range': range_name})
