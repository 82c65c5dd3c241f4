"""
Review Request Email Template
=============================

HTML body of the review request email. The open-tracking pixel (if any) sits
at the end of the body; the call-to-action points at the click-tracking
redirect, or straight at the review page when tracking is off.
"""

from html import escape
from typing import Optional

SUBJECT_TEMPLATE = "How was your experience at {business}?"


def review_request_subject(business_name: str) -> str:
    return SUBJECT_TEMPLATE.format(business=business_name)


def render_review_request(
    customer_name: str,
    business_name: str,
    review_link: str,
    tracking_pixel_url: Optional[str] = None,
) -> str:
    """Render the review request HTML for one recipient."""
    name = escape(customer_name or "Valued Customer")
    business = escape(business_name)
    link = escape(review_link, quote=True)

    tracking_pixel = (
        f'<img src="{escape(tracking_pixel_url, quote=True)}" width="1" height="1" alt="" '
        f'style="display:none;width:1px;height:1px;border:0;" />'
        if tracking_pixel_url else ""
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Share Your Experience</title>
</head>
<body style="margin:0;padding:0;font-family:'Segoe UI',Tahoma,Geneva,Verdana,sans-serif;background-color:#f5f5f5;">
  <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color:#f5f5f5;">
    <tr>
      <td style="padding:40px 20px;">
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%"
               style="max-width:600px;margin:0 auto;background-color:#ffffff;border-radius:16px;overflow:hidden;">
          <tr>
            <td style="background:linear-gradient(135deg,#7c3aed 0%,#06b6d4 100%);padding:50px 40px;text-align:center;">
              <h1 style="margin:0;color:#ffffff;font-size:28px;font-weight:600;">We'd Love Your Feedback!</h1>
              <p style="margin:15px 0 0 0;color:rgba(255,255,255,0.9);font-size:16px;">Your opinion matters to us</p>
            </td>
          </tr>
          <tr>
            <td style="padding:50px 40px;text-align:center;">
              <p style="margin:0 0 20px 0;color:#333333;font-size:18px;line-height:1.6;">Hi <strong>{name}</strong>!</p>
              <p style="margin:0 0 25px 0;color:#555555;font-size:16px;line-height:1.6;">
                Thank you for choosing <strong style="color:#7c3aed;">{business}</strong>!
              </p>
              <p style="margin:0 0 30px 0;color:#555555;font-size:16px;line-height:1.6;">
                We hope you had a great experience. Would you mind taking a moment to share your thoughts with us?
              </p>
              <table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin:35px auto;">
                <tr>
                  <td style="border-radius:50px;background:linear-gradient(135deg,#7c3aed 0%,#06b6d4 100%);">
                    <a href="{link}" target="_blank"
                       style="display:inline-block;padding:18px 45px;color:#ffffff;text-decoration:none;font-size:18px;font-weight:600;">
                      Leave a Review
                    </a>
                  </td>
                </tr>
              </table>
              <p style="margin:30px 0 0 0;color:#888888;font-size:14px;">It only takes a minute and helps us serve you better!</p>
            </td>
          </tr>
          <tr>
            <td style="background-color:#f8f9fa;padding:30px 40px;text-align:center;border-top:1px solid #eeeeee;">
              <p style="margin:0;color:#888888;font-size:13px;">Thank you for being a valued customer of {business}</p>
              <p style="margin:10px 0 0 0;color:#aaaaaa;font-size:11px;">This email was sent because you recently visited our business.</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
  {tracking_pixel}
</body>
</html>"""
