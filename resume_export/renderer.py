# resume_export/renderer.py
"""Resume renderers.

A renderer turns a RenderableInput into PDF bytes. Calls block, may be slow
and can't be interrupted once started; the worker pool is responsible for
timing them out.
"""
import base64
import logging
from datetime import date, datetime

from jinja2 import Environment, PackageLoader, TemplateNotFound, select_autoescape
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from werkzeug.utils import secure_filename

from .celery_worker import celery
from .errors import RenderFailure
from .models import RenderableInput

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = 'modern'

PAGE_MARGIN = {'top': '20mm', 'right': '20mm', 'bottom': '20mm', 'left': '20mm'}

HEADER_TEMPLATE = '<div style="font-size: 10px; width: 100%; text-align: center; color: #777;">{title}</div>'
FOOTER_TEMPLATE = (
    '<div style="font-size: 10px; width: 100%; text-align: center; color: #777;">'
    '<span class="pageNumber"></span> / <span class="totalPages"></span></div>'
)


def month_year(value):
    if not value:
        return 'Present'
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, (date, datetime)):
        return value.strftime('%b %Y')
    return str(value)


templates = Environment(
    loader=PackageLoader('resume_export', 'templates/pdf'),
    autoescape=select_autoescape(['html']),
)
templates.filters['month_year'] = month_year


def build_html(payload):
    """Fill the payload's HTML template with the resume content.

    Unknown template names fall back to the default template.
    """
    name = secure_filename(payload.template_name) or DEFAULT_TEMPLATE
    try:
        template = templates.get_template(f'{name}.html')
    except TemplateNotFound:
        logger.warning("Template %s not found, using %s", name, DEFAULT_TEMPLATE)
        template = templates.get_template(f'{DEFAULT_TEMPLATE}.html')

    resume = payload.resume
    return template.render(
        title=resume.get('title', ''),
        personal=resume.get('personalInfo') or {},
        experience=resume.get('experience') or [],
        education=resume.get('education') or [],
        skills=resume.get('skills') or [],
        projects=resume.get('projects') or [],
        certifications=resume.get('certifications') or [],
    )


class Renderer:
    def render(self, payload, progress=None):
        """Return PDF bytes for `payload`.

        `progress`, when given, accepts an integer percentage. Raise on failure;
        the exception message becomes the job's error.
        """
        raise NotImplementedError


class PlaywrightRenderer(Renderer):
    """Prints the filled HTML template to an A4 PDF with headless Chromium."""

    def __init__(self, browser_args=None):
        self.browser_args = browser_args or [
            '--no-sandbox',
            '--disable-setuid-sandbox',
            '--disable-dev-shm-usage',
        ]

    def render(self, payload, progress=None):
        report = progress or (lambda value: None)
        html = build_html(payload)
        report(25)

        try:
            with sync_playwright() as pw:
                browser = pw.chromium.launch(headless=True, args=self.browser_args)
                try:
                    page = browser.new_page(viewport={'width': 1200, 'height': 1600})
                    page.set_content(html, wait_until='networkidle')
                    report(50)
                    pdf = page.pdf(
                        format='A4',
                        print_background=True,
                        margin=PAGE_MARGIN,
                        display_header_footer=True,
                        header_template=HEADER_TEMPLATE.format(title=payload.resume.get('title', '')),
                        footer_template=FOOTER_TEMPLATE,
                    )
                finally:
                    browser.close()
        except PlaywrightError as e:
            logger.error("PDF generation error: %s", e)
            raise RenderFailure(f"Failed to generate PDF: {e.message}") from e

        report(90)
        return pdf


class CeleryRenderer(Renderer):
    """Ships the render to a Celery worker and waits for its PDF."""

    def __init__(self, timeout=None):
        self.timeout = timeout

    def render(self, payload, progress=None):
        task = render_resume_pdf.delay(payload.to_dict())
        logger.info("Dispatched render task %s", task.id)
        if progress:
            progress(10)
        encoded = task.get(timeout=self.timeout)
        return base64.b64decode(encoded)


@celery.task(name='resume_export.render_resume_pdf')
def render_resume_pdf(payload):
    pdf = PlaywrightRenderer().render(RenderableInput.from_dict(payload))
    # The result backend only carries JSON.
    return base64.b64encode(pdf).decode('ascii')
