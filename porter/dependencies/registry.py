# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2022 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License version 3 as
# published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""Listing the tags of a repository in an OCI registry."""

import os
import re
import urllib.parse
from typing import Dict, List, Optional

import requests
from craft_cli import emit
from requests.adapters import HTTPAdapter
from requests.packages.urllib3.util.retry import Retry  # type: ignore[import]

from porter import __version__, errors
from porter.cnab.reference import DEFAULT_REGISTRY, OCIReference

# docker.io is an alias, the API is served from another host
_REGISTRY_HOSTS = {DEFAULT_REGISTRY: "registry-1.docker.io"}

_LINK_NEXT = re.compile(r'<(?P<url>[^>]+)>\s*;\s*rel="?next"?')
_CHALLENGE_PARAM = re.compile(r'(?P<key>\w+)="(?P<value>[^"]*)"')


def _get_host(registry: str) -> str:
    return _REGISTRY_HOSTS.get(registry, registry)


class RegistryClient:
    """Minimal client for the OCI distribution API.

    Only anonymous access is supported: a bearer challenge is answered with
    an anonymous token from the advertised realm.

    :param timeout: Timeout of each request, in seconds.
    :param insecure: Talk plain http to the registry.
    """

    def __init__(self, *, timeout: float = 30.0, insecure: bool = False) -> None:
        self.timeout = timeout
        self.scheme = "http" if insecure else "https"
        self.session = requests.Session()
        retries = Retry(
            total=int(os.environ.get("PORTER_REGISTRY_RETRIES", 3)),
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))
        self._headers = {"User-Agent": f"porter/{__version__}"}
        self._tokens: Dict[str, str] = {}

    def _request(self, url: str, scope: str) -> requests.Response:
        headers = dict(self._headers)
        token = self._tokens.get(scope)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            if response.status_code == 401 and not token:
                self._tokens[scope] = self._get_token(
                    response.headers.get("WWW-Authenticate", ""), scope
                )
                headers["Authorization"] = f"Bearer {self._tokens[scope]}"
                response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as err:
            raise errors.RegistryError(f"error contacting registry at {url}: {err}") from err

        if not response.ok:
            raise errors.RegistryError(
                f"registry request to {url} failed: {response.status_code} {response.reason}"
            )
        return response

    def _get_token(self, challenge: str, scope: str) -> str:
        if not challenge.lower().startswith("bearer "):
            raise errors.RegistryError(
                "the registry requires authentication, which is not supported"
            )
        params = {
            match.group("key"): match.group("value")
            for match in _CHALLENGE_PARAM.finditer(challenge)
        }
        realm = params.pop("realm", "")
        if not realm:
            raise errors.RegistryError(
                f"invalid authentication challenge from the registry: {challenge!r}"
            )
        params.setdefault("scope", scope)

        emit.debug(f"Requesting an anonymous registry token from {realm}")
        try:
            response = self.session.get(
                realm, params=params, headers=self._headers, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as err:
            raise errors.RegistryError(
                f"could not get a registry token from {realm}: {err}"
            ) from err
        return str(data.get("token") or data.get("access_token") or "")

    def list_tags(self, reference: OCIReference) -> List[str]:
        """Return every tag of the repository of ``reference``.

        :raises RegistryError: if the tags cannot be listed.
        """
        host = _get_host(reference.registry)
        scope = f"repository:{reference.path}:pull"
        url: Optional[str] = f"{self.scheme}://{host}/v2/{reference.path}/tags/list"

        tags: List[str] = []
        while url:
            emit.debug(f"Listing tags from {url}")
            response = self._request(url, scope)
            try:
                tags.extend(response.json().get("tags") or [])
            except ValueError as err:
                raise errors.RegistryError(
                    f"invalid tag listing for {reference.repository}: {err}"
                ) from err
            url = self._next_page(url, response.headers.get("Link", ""))
        return tags

    @staticmethod
    def _next_page(url: str, link: str) -> Optional[str]:
        match = _LINK_NEXT.search(link)
        if not match:
            return None
        return urllib.parse.urljoin(url, match.group("url"))
