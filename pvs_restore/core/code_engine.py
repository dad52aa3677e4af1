"""
PowerVS Restore - Follow-on Job Trigger

Submits a run of a Code Engine job (the separate cleanup job) once the
restore has fully succeeded. This is fire-and-forget: we report the
job run name and do not wait for it.
"""

import json

import httplib2

from pvs_restore.core.config import VERSION
from pvs_restore.core.exceptions import APIError, DataShapeError, SubmissionError, TransportError
from pvs_restore.core.client import first_present
from pvs_restore.utils.logger import log_api_call, log_api_response


class CodeEngineClient:
    """
    Minimal Code Engine v2 client: resolve a project, submit a job run.

    Example:
        ce = CodeEngineClient('us-south', auth, logger=logger)
        run_name = ce.submit_job_run('IBMi', 'prod-cleanup')
    """

    def __init__(self, region: str, authenticator, http=None, logger=None, timeout: int = 60):
        self.base_url = f'https://api.{region}.codeengine.cloud.ibm.com/v2'
        self.authenticator = authenticator
        self.http = http or httplib2.Http(timeout=timeout)
        self.logger = logger

    def _request(self, method: str, path: str, body=None):
        url = f'{self.base_url}{path}'
        log_api_call(self.logger, method, url, body)
        headers = {
            'Authorization': f'Bearer {self.authenticator.get_token()}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': f'pvs-restore/{VERSION}',
        }
        try:
            response, content = self.http.request(
                url, method=method,
                body=json.dumps(body) if body is not None else None,
                headers=headers
            )
        except (httplib2.HttpLib2Error, OSError) as e:
            raise TransportError(method, url, str(e))

        text = content.decode('utf-8', 'replace') if isinstance(content, bytes) else (content or '')
        log_api_response(self.logger, text)

        if not 200 <= response.status < 300:
            raise APIError(method, url, response.status, text)
        try:
            return json.loads(text) if text.strip() else {}
        except ValueError:
            raise DataShapeError(f"{method} {url} returned a non-JSON body", payload=text)

    def find_project_id(self, project_name: str) -> str:
        """
        Resolve a project id from its name.

        Raises:
            SubmissionError: If no project carries that name
        """
        reply = self._request('GET', '/projects')
        for project in reply.get('projects') or []:
            if project.get('name') == project_name:
                return project['id']
        raise SubmissionError('Code Engine project lookup', f"no project named '{project_name}'")

    def submit_job_run(self, project_name: str, job_name: str) -> str:
        """
        Submit a run of an existing job.

        Returns:
            str: Name of the submitted job run
        """
        project_id = self.find_project_id(project_name)
        reply = self._request('POST', f'/projects/{project_id}/job_runs', {'job_name': job_name})

        run_name = first_present(reply.get('metadata') or {}, 'name') or first_present(reply, 'name')
        if not run_name:
            raise DataShapeError("Job run submission returned no run name", payload=reply)
        return run_name
