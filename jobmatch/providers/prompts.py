"""Prompt rendering for scoring calls using Jinja2."""

from typing import Dict, List

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from jobmatch.logging import get_logger

from .exceptions import ProviderConfigurationError
from .schema import AIScoringRequest

logger = get_logger(__name__, component="provider")


class PromptRenderer:
    """Renders chat messages for a scoring request.

    Templates live in the jobmatch.providers `templates` directory. StrictUndefined
    makes a missing variable fail at render time instead of producing an empty prompt.
    """

    def __init__(
        self,
        template_dir: str = "templates",
        system_template: str = "system.j2",
        user_template: str = "score_batch.j2",
    ):
        self.system_template_name = system_template
        self.user_template_name = user_template
        self.env = Environment(
            loader=PackageLoader("jobmatch.providers", template_dir),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_messages(self, request: AIScoringRequest) -> List[Dict[str, str]]:
        """Render the system and user messages for a chat completion.

        Args:
            request: Scoring request

        Returns:
            List of {"role", "content"} messages

        Raises:
            ProviderConfigurationError: If a template is missing or fails to render
        """
        context = {
            "user": request.user.model_dump(),
            "jobs": [job.model_dump() for job in request.jobs],
            "min_results": min(request.min_results, len(request.jobs)),
        }
        try:
            system = self.env.get_template(self.system_template_name).render(context)
            user = self.env.get_template(self.user_template_name).render(context)
        except TemplateError as e:
            logger.error(
                f"Prompt rendering failed: {e}",
                extra={"event": "provider.prompt.render_failed", "error_type": type(e).__name__},
            )
            raise ProviderConfigurationError(f"Prompt rendering failed: {e}") from e

        return [
            {"role": "system", "content": system.strip()},
            {"role": "user", "content": user.strip()},
        ]
