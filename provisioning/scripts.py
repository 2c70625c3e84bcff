"""
Provisioning - Initial Scripts.

Optional literal SQL run against the administrative database
right before and right after the databases are provisioned.
The text is submitted verbatim, once per fresh cluster.
"""

import logging

from cluster.config import InitialScript

from .provisioner import SqlChannel


logger = logging.getLogger(__name__)


class ScriptRunner:
    """Runs the before/after hooks of an InitialScript."""

    def __init__(self, script: InitialScript):
        self._script = script

    def run_before(self, client: SqlChannel) -> bool:
        return self._run("before", self._script.before, client)

    def run_after(self, client: SqlChannel) -> bool:
        return self._run("after", self._script.after, client)

    def _run(self, hook: str, sql, client: SqlChannel) -> bool:
        """Returns True when the hook had SQL to run."""
        if not sql:
            logger.debug(f"No {hook} script configured")
            return False
        logger.info(f"Running initial {hook} script")
        client.execute(client.admin_database, sql, source=f"initial_script.{hook}")
        return True
