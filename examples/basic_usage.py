"""
Example: Basic portal Web API usage with portals_webapi
=======================================================

This example shows the data API operations against a portal site.
"""

from portals_webapi import PortalConfig, PortalSession, SessionInvalidError
from portals_webapi.webapi import WebApiService, JsonQueryClient, escape_odata_literal


def example_basic_crud():
    """Create, read, update and delete a contact."""

    cfg = PortalConfig(
        base_url="https://your-site.powerappsportals.com",
        cookies={".AspNet.ApplicationCookie": "<cookie of a signed-in user>"},
    )

    with PortalSession(cfg) as sess:
        api = WebApiService(sess)

        contact_id = api.create("contacts", {"firstname": "Ada", "lastname": "Lovelace"})
        print("Created:", contact_id)

        api.update("contacts", contact_id, {"jobtitle": "Analyst"})
        api.update_column("contacts", contact_id, "telephone1", "555-0100")
        print(api.retrieve("contacts", contact_id, ["fullname", "jobtitle", "telephone1"]))

        rows = api.retrieve_multiple(
            "contacts",
            fields=["fullname"],
            filter_expr=f"lastname eq '{escape_odata_literal('Lovelace')}'",
            top=10,
        )
        print(f"Found {len(rows)} contacts")

        api.delete("contacts", contact_id)


def example_files():
    """Upload to and download from a file column."""
    from portals_webapi import ConnectionContext

    # Reads PORTAL_BASE_URL, PORTAL_AUTH_COOKIE, ... from the environment
    with ConnectionContext() as conn:
        api = conn.get_service()
        contact_id = "<contact guid>"

        with open("resume.pdf", "rb") as fh:
            api.upload_file("contacts", contact_id, "cr0_resume", "resume.pdf", fh.read())

        try:
            f = api.download_file("contacts", contact_id, "cr0_resume")
        except SessionInvalidError:
            print("Session expired, sign in again")
            return
        print("Saved to", f.save("downloads"))


def example_json_endpoint():
    """Call the legacy JSON endpoint."""
    from portals_webapi import ConnectionContext

    with ConnectionContext() as conn:
        client: JsonQueryClient = conn.get_json_client()
        print(client.get_json_data("getSnippetData", {"snippetList": "snippet1,snippet2"}))


if __name__ == "__main__":
    # Uncomment the example you want to run
    # example_basic_crud()
    # example_files()
    # example_json_endpoint()

    print("Set up your environment variables and uncomment an example to run.")
    print("Required: PORTAL_BASE_URL, PORTAL_AUTH_COOKIE")
