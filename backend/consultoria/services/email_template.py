"""
Notification email template.

Renders the HTML email the practitioner receives for each accepted contact
submission. The document layout is fixed; only the escaped submission fields
vary, and the phone / preferred-date blocks are left out of the document
entirely when the visitor did not provide them.

Public API:
  render_consultation_email(submission: SanitizedSubmission) -> str
"""

from consultoria.models.contact import SanitizedSubmission

# ---------------------------------------------------------------------------
# Template fragments
# ---------------------------------------------------------------------------

# Brand colours match the site palette (primary red, accent violet).
_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #2E2E2E; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: linear-gradient(135deg, #B11226, #7A6C9D); color: white; padding: 20px; border-radius: 8px 8px 0 0; }
    .content { background: #f9f9f9; padding: 20px; border-radius: 0 0 8px 8px; }
    .field { margin-bottom: 15px; }
    .label { font-weight: bold; color: #B11226; }
    .value { margin-top: 5px; white-space: pre-wrap; }
    .footer { margin-top: 20px; padding-top: 20px; border-top: 1px solid #ddd; font-size: 12px; color: #666; }
"""

_FIELD = """
        <div class="field">
          <div class="label">{label}</div>
          <div class="value">{value}</div>
        </div>"""

_DOCUMENT = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>{style}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1 style="margin: 0;">Nueva Solicitud de Consultoría</h1>
    </div>
    <div class="content">{fields}
      <div class="footer">
        <p>Este mensaje fue enviado desde el formulario de contacto de tu sitio web.</p>
      </div>
    </div>
  </div>
</body>
</html>
"""


def _field(label: str, value: str) -> str:
    return _FIELD.format(label=label, value=value)


def render_consultation_email(submission: SanitizedSubmission) -> str:
    """
    Render the notification email for a sanitized submission.

    The submission's fields are already HTML-escaped, so they are interpolated
    verbatim. Do not pass unsanitized input here.
    """
    fields = [
        _field("Nombre:", submission.name),
        _field(
            "Correo electrónico:",
            f'<a href="mailto:{submission.email}">{submission.email}</a>',
        ),
    ]
    if submission.phone:
        fields.append(
            _field("Teléfono:", f'<a href="tel:{submission.phone}">{submission.phone}</a>')
        )
    if submission.preferred_date:
        fields.append(_field("Fecha preferida para consultoría:", submission.preferred_date))
    fields.append(_field("Mensaje:", submission.message))

    return _DOCUMENT.format(style=_STYLE, fields="".join(fields))
