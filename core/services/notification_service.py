# =============================================================================
# core/services/notification_service.py - Delivery Notifier
# =============================================================================
# Sends the "your pack is ready" email through the Resend HTTP API.
#
# A failed send never changes the order: the link stays reachable through
# /pack-status and /download.
# =============================================================================

import html
import logging
from datetime import datetime
from string import Template

import httpx

from app.config import settings
from app.exceptions import EmailDeliveryError
from lib.utils import format_size

logger = logging.getLogger(__name__)

PACK_READY_SUBJECT = "Votre pack personnalisé est prêt !"

PACK_READY_TEMPLATE = Template("""\
<!DOCTYPE html>
<html>
  <head>
    <style>
      body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
      .container { max-width: 600px; margin: 0 auto; padding: 20px; }
      .header { background: #667eea; color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }
      .content { background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px; }
      .button { display: inline-block; padding: 15px 30px; background: #667eea; color: white; text-decoration: none; border-radius: 5px; font-weight: bold; margin: 20px 0; }
      .info-box { background: white; padding: 15px; border-left: 4px solid #667eea; margin: 20px 0; }
      .footer { text-align: center; margin-top: 30px; color: #666; font-size: 12px; }
    </style>
  </head>
  <body>
    <div class="container">
      <div class="header">
        <h1>Votre pack est prêt !</h1>
      </div>
      <div class="content">
        <p>Bonjour,</p>
        <p>Votre pack personnalisé <strong>#$pack_id</strong> a été généré avec succès.</p>
        <div style="text-align: center;">
          <a href="$download_url" class="button">Télécharger mon pack</a>
        </div>
        <div class="info-box">
          <strong>Informations importantes :</strong>
          <ul>
            <li>Ce lien est valide jusqu'au <strong>$expires_on</strong></li>
            <li>Fichiers inclus : $files_count</li>
            <li>Taille : $size</li>
          </ul>
        </div>
        <p>Si vous rencontrez un problème, contactez notre support à $support_email</p>
        <p>Merci de votre confiance !</p>
      </div>
      <div class="footer">
        <p>&copy; $year PackShop - Tous droits réservés</p>
      </div>
    </div>
  </body>
</html>
""")


def render_pack_ready(
    download_url: str,
    pack_id: str,
    expires_at: datetime,
    files_count: int,
    size_bytes: int,
) -> str:
    """Render the delivery email body. All values are HTML-escaped."""
    return PACK_READY_TEMPLATE.substitute(
        pack_id=html.escape(pack_id),
        download_url=html.escape(download_url, quote=True),
        expires_on=expires_at.strftime("%d/%m/%Y %H:%M UTC"),
        files_count=files_count,
        size=format_size(size_bytes),
        support_email=html.escape(settings.SUPPORT_EMAIL),
        year=expires_at.year,
    )


class NotificationService:
    """Outgoing customer email."""

    @staticmethod
    def send_pack_ready(
        email: str,
        download_url: str,
        pack_id: str,
        expires_at: datetime,
        files_count: int,
        size_bytes: int,
    ) -> bool:
        """
        Email the download link for a completed pack.

        Returns:
            True if the provider accepted the message, False if sending is
            disabled (no RESEND_API_KEY)

        Raises:
            EmailDeliveryError: If the provider is unreachable or refuses
        """
        if not settings.RESEND_API_KEY:
            logger.warning(f"RESEND_API_KEY not set, skipping delivery email for pack {pack_id}")
            return False

        payload = {
            "from": settings.EMAIL_FROM,
            "to": [email],
            "subject": PACK_READY_SUBJECT,
            "html": render_pack_ready(download_url, pack_id, expires_at, files_count, size_bytes),
        }

        try:
            response = httpx.post(
                settings.RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
                timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(str(e))

        if response.status_code >= 400:
            raise EmailDeliveryError(f"{response.status_code}: {response.text}")

        logger.info(f"Delivery email for pack {pack_id} sent to {email}")
        return True
