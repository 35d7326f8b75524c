"""
Reporting sinks for deployment runs.

Sinks only observe: they print summaries and verification commands, raise
alerts and persist what was resolved. Nothing they return is used by the
orchestrator.
"""

import json
import logging
import os
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

import requests

from deployer.specs import Component, LinkCall, Mode

logger = logging.getLogger(__name__)

VERIFY_COMMAND = "npx hardhat verify --network"


class ReportingSink:
    """No-op base sink; subclasses override the hooks they care about"""

    def on_component_resolved(self, component: Component):
        pass

    def on_link_executed(self, component: Component, call: LinkCall):
        pass

    def on_run_failed(self, error: Exception):
        pass

    def on_run_completed(self, components: List[Component]):
        pass


def verify_command(network: str, component: Component) -> str:
    """Hardhat verification command for a deployed component"""
    parts = [VERIFY_COMMAND, network, component.address]
    parts.extend(_format_arg(arg) for arg in component.args)
    return " ".join(parts)


def _format_arg(value: Any) -> str:
    if isinstance(value, str) and (" " in value or not value):
        return f'"{value}"'
    return str(value)


class LoggingReportingSink(ReportingSink):
    """Logs every resolution along with the command that verifies it"""

    def __init__(self, network: str):
        self.network = network
        self.verify_commands: List[str] = []

    def on_component_resolved(self, component: Component):
        logger.info(f"{component.name}: {component.address}")
        if component.mode is Mode.DEPLOYED:
            command = verify_command(self.network, component)
            self.verify_commands.append(command)
            logger.info(command)

    def on_link_executed(self, component: Component, call: LinkCall):
        logger.info(f"{component.name}: {call.label} executed")

    def on_run_failed(self, error: Exception):
        logger.error(f"Deployment on {self.network} failed: {error}")

    def on_run_completed(self, components: List[Component]):
        deployed = sum(1 for c in components if c.mode is Mode.DEPLOYED)
        attached = len(components) - deployed
        logger.info(f"Deployment on {self.network} completed - Deployed: {deployed}, Attached: {attached}")


class AlertingReportingSink(ReportingSink):
    """Sends failed-run alerts via email and/or Slack"""

    def __init__(self, network: str, slack_webhook: Optional[str] = None,
                 smtp_server: str = "smtp.gmail.com", smtp_port: int = 587,
                 smtp_username: Optional[str] = None, smtp_password: Optional[str] = None,
                 notification_email: Optional[str] = None):
        self.network = network
        self.slack_webhook = slack_webhook
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.notification_email = notification_email
        self.resolved: List[Component] = []

    @classmethod
    def from_settings(cls, settings) -> "AlertingReportingSink":
        return cls(
            settings.network,
            slack_webhook=settings.slack_webhook,
            smtp_server=settings.smtp_server,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            notification_email=settings.notification_email,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.slack_webhook or (self.smtp_username and self.smtp_password and self.notification_email))

    def on_component_resolved(self, component: Component):
        self.resolved.append(component)

    def on_run_failed(self, error: Exception):
        self._send_alert(f"Deployment on {self.network} failed: {error}")

    def _send_alert(self, message: str):
        logger.error(f"ALERT: {message}")

        if self.smtp_username and self.smtp_password and self.notification_email:
            try:
                self._send_email_alert(message)
            except Exception as e:
                logger.error(f"Failed to send email alert: {e}")

        if self.slack_webhook:
            try:
                self._send_slack_alert(message)
            except Exception as e:
                logger.error(f"Failed to send Slack alert: {e}")

    def _send_email_alert(self, message: str):
        msg = MIMEMultipart()
        msg['From'] = self.smtp_username
        msg['To'] = self.notification_email
        msg['Subject'] = f"Deployment Alert ({self.network})"

        resolved = "\n".join(f"        - {c.name}: {c.address}" for c in self.resolved) or "        - none"
        body = f"""
        Deployment Alert

        Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}
        Message: {message}

        Resolved before failure:
{resolved}
        """

        msg.attach(MIMEText(body, 'plain'))

        server = smtplib.SMTP(self.smtp_server, self.smtp_port)
        server.starttls()
        server.login(self.smtp_username, self.smtp_password)
        server.send_message(msg)
        server.quit()

    def _send_slack_alert(self, message: str):
        payload = {
            "text": f"Deployment Alert: {message}",
            "attachments": [
                {
                    "fields": [
                        {
                            "title": component.name,
                            "value": component.address,
                            "short": True
                        }
                        for component in self.resolved
                    ]
                }
            ]
        }

        response = requests.post(self.slack_webhook, json=payload, timeout=10)
        response.raise_for_status()


class DeploymentRecordSink(ReportingSink):
    """
    Writes resolved addresses to a deployment.json record.

    The record is written on completion and on failure so the operator can
    pin the already deployed components before re-running. Linking calls a
    failure left undone are listed under ``pendingLinks`` so that re-run
    still executes them.
    """

    def __init__(self, path: str, network: str, deployer: Optional[str] = None,
                 pending_links: Optional[Dict[str, List[str]]] = None):
        self.path = path
        self.network = network
        self.deployer = deployer
        self.contracts: Dict[str, str] = {}
        self.pending_links = {name: list(labels) for name, labels in (pending_links or {}).items()}

    def on_component_resolved(self, component: Component):
        self.contracts[component.name] = component.address

    def on_run_failed(self, error: Exception):
        component = getattr(error, "component", None)
        address = getattr(error, "address", None)
        if component and address:
            self.contracts[component] = address
        pending = getattr(error, "pending_links", None)
        if component and pending:
            self.pending_links[component] = list(pending)
        self.write(status="aborted", error=str(error))

    def on_link_executed(self, component: Component, call: LinkCall):
        pending = self.pending_links.get(component.name)
        if pending and pending[0] == call.label:
            pending.pop(0)
            if not pending:
                del self.pending_links[component.name]

    def on_run_completed(self, components: List[Component]):
        self.write(status="completed")

    def write(self, status: str, error: Optional[str] = None):
        record: Dict[str, Any] = {
            "network": self.network,
            "status": status,
            "timestamp": datetime.now().isoformat(),
            "contracts": dict(self.contracts),
            "roles": {"deployer": self.deployer},
        }
        if error:
            record["error"] = error
        if self.pending_links:
            record["pendingLinks"] = dict(self.pending_links)

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(record, f, indent=2)
        logger.info(f"Deployment record written to {self.path}")


class CompositeReportingSink(ReportingSink):
    """Forwards every event to each wrapped sink"""

    def __init__(self, *sinks: ReportingSink):
        self.sinks = list(sinks)

    def _dispatch(self, hook: str, *args):
        for sink in self.sinks:
            try:
                getattr(sink, hook)(*args)
            except Exception as e:
                logger.error(f"{type(sink).__name__}.{hook} failed: {e}")

    def on_component_resolved(self, component: Component):
        self._dispatch("on_component_resolved", component)

    def on_link_executed(self, component: Component, call: LinkCall):
        self._dispatch("on_link_executed", component, call)

    def on_run_failed(self, error: Exception):
        self._dispatch("on_run_failed", error)

    def on_run_completed(self, components: List[Component]):
        self._dispatch("on_run_completed", components)
