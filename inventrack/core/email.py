from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from pydantic import EmailStr
from inventrack.core.config import settings
from inventrack.models.bill import Bill

# 1. Configure the Connection
def get_mail_config() -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.MAIL_USERNAME,
        MAIL_PASSWORD=settings.MAIL_PASSWORD,
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
        MAIL_PORT=settings.MAIL_PORT,
        MAIL_SERVER=settings.MAIL_SERVER,
        MAIL_STARTTLS=settings.MAIL_STARTTLS,
        MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
        USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
        VALIDATE_CERTS=True,
        SUPPRESS_SEND=int(settings.MAIL_SUPPRESS_SEND),
    )

# 2. Render the receipt
def render_bill_html(bill: Bill) -> str:
    rows = "".join(
        f"""
                        <tr>
                            <td style="padding: 6px;">{item.name} <span style="color: #777;">({item.brand})</span></td>
                            <td style="padding: 6px; text-align: right;">{item.quantity}</td>
                            <td style="padding: 6px; text-align: right;">{item.price:.2f}</td>
                            <td style="padding: 6px; text-align: right;">{item.amount:.2f}</td>
                        </tr>"""
        for item in bill.items
    )
    totals = bill.totals

    return f"""
    <html>
        <body style="font-family: Arial, sans-serif; color: #333;">
            <div style="background-color: #f4f4f4; padding: 20px;">
                <div style="background-color: white; padding: 20px; border-radius: 8px; max-width: 600px; margin: auto;">
                    <h2 style="color: #2c3e50;">{bill.branch_name}</h2>
                    <p style="font-size: 12px; color: #777;">{bill.branch_location}</p>
                    <p>Bill No: <strong>{bill.bill_number}</strong><br>
                       Date: {bill.bill_date:%d-%m-%Y %I:%M %p}<br>
                       Customer: {bill.customer.name} ({bill.customer.phone})</p>

                    <table style="width: 100%; border-collapse: collapse;">
                        <tr style="background-color: #f4f4f4;">
                            <th style="padding: 6px; text-align: left;">Item</th>
                            <th style="padding: 6px; text-align: right;">Qty</th>
                            <th style="padding: 6px; text-align: right;">Price</th>
                            <th style="padding: 6px; text-align: right;">Amount</th>
                        </tr>{rows}
                    </table>

                    <p style="text-align: right;">
                        Subtotal: {totals.subtotal:.2f}<br>
                        Discount ({bill.discount:g}%): -{totals.discount_amount:.2f}<br>
                        Taxable: {totals.taxable_amount:.2f}<br>
                        GST ({bill.gst_rate:g}%): {totals.gst_amount:.2f}<br>
                        <strong>Total: {totals.total:.2f}</strong>
                    </p>
                    <p style="font-size: 12px; color: #777;">
                        Paid by {bill.payment_method.value}. Served by {bill.staff_name}.<br>
                        Thank you for shopping with us!
                    </p>
                </div>
            </div>
        </body>
    </html>
    """

# 3. Send it
async def send_bill_email(email_to: EmailStr, bill: Bill):
    """
    Sends the bill as a styled HTML receipt.
    """
    message = MessageSchema(
        subject=f"Your bill {bill.bill_number} from {bill.branch_name}",
        recipients=[email_to],
        body=render_bill_html(bill),
        subtype=MessageType.html
    )

    fm = FastMail(get_mail_config())
    await fm.send_message(message)
    return True
