from clientdesk.activity.models import Activity
from clientdesk.claims.models import Claim, ClaimAttachment
from clientdesk.clients.models import Client, ClientProduct
from clientdesk.leads.models import Lead
from clientdesk.products.models import Product
from clientdesk.users.models import User

__all__ = [
	"Activity",
	"Claim",
	"ClaimAttachment",
	"Client",
	"ClientProduct",
	"Lead",
	"Product",
	"User",
]
