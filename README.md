# rsplpa

A library for the card-side and server-side steps of eSIM remote SIM
provisioning, as a Local Profile Assistant performs them. It builds and
parses ES10b/ES10c commands for an eUICC. It runs the ES9+/ES11 JSON
exchanges with an SM-DP+ or SM-DS server.

The library ships no card reader and no HTTP client. You supply both by
implementing two small interfaces from `rsplpa.interface`:

- `ApduInterface`: `connect()`, `disconnect()`, `logic_channel_open(aid)`
  (returns the channel number), `logic_channel_close(channel)` and
  `transmit(data)`. `transmit` returns the card's response bytes with SW1/SW2
  at the end.
- `HttpInterface`: `transmit(url, data, headers)`, returning a tuple of the
  HTTP status code and the response body.

## Modules

- `rsplpa.encoding`: hex and GSM BCD conversion (`bin2hex`, `hex2bin`,
  `gsmbcd2bin`, `bin2gsmbcd`). BER-TLV parsing and encoding (`Tlv`,
  `iter_tlv`, `first_tlv`, `find_tag`, `find_alias_tags`, `encode_tlv`).
  Integer helpers (`bytes_to_int`, `int_to_bytes`) and BIT STRING decoding
  (`bits_to_names`).
- `rsplpa.interface`: the two interfaces, `ApduRequest`/`ApduResponse`,
  `apdu_lc`, `apdu_le`, `transmit_apdu`, and the errors `EuiccError` and
  `ApduError`.
- `rsplpa.context`: `EuiccContext`. It opens a logical channel to the ISD-R
  (or the AID you pass) and splits ES10x requests into segments. It follows
  `61xx` GET RESPONSE chaining and keeps the download-session state in
  `ctx.session`.
- `rsplpa.es10c_ex`: `get_euiccinfo2` / `parse_euiccinfo2`, which return
  `EuiccInfo2`.
- `rsplpa.rat`: `get_rat` / `parse_rat`, which return the Rules Authorisation
  Table as a list of `ProfilePolicyRule`.
- `rsplpa.notifications`: `list_notification`,
  `retrieve_notifications_list`, `remove_notification_from_list`.
- `rsplpa.authentication`: `authenticate_server` and
  `build_authenticate_server_request`.
- `rsplpa.download`: `prepare_download`, `load_bound_profile_package`,
  `split_bound_profile_package`, `parse_installation_result`,
  `hash_confirmation_code` and `BppLoadError`.
- `rsplpa.es9p`: `initiate_authentication`, `authenticate_client`,
  `get_bound_profile_package`, `cancel_session`, `handle_notification`,
  `es11_authenticate_client`, plus the lower-level `transact` and
  `trim_base64`.
- `rsplpa.es9p_errors`: `error_message(subject_code, reason_code)`. It gives
  the description of a known server status code, or `None` if the code is
  unknown.

## Reading the card

```python
from rsplpa.context import EuiccContext
from rsplpa.es10c_ex import get_euiccinfo2
from rsplpa.rat import get_rat

with EuiccContext(apdu=my_reader) as ctx:
    info = get_euiccinfo2(ctx)
    print(info.profile_version, info.euicc_firmware_ver, info.uicc_capability)
    for rule in get_rat(ctx):
        print(rule.ppr_ids, rule.ppr_flags, rule.allowed_operators)
```

## Downloading a profile

The download steps hand their results to each other through `ctx.session`, an
`HttpSessionState`. The first step needs the eUICC challenge and EUICCInfo1,
both base64-encoded. You must place them in the session yourself (see below).

```python
from rsplpa.context import EuiccContext
from rsplpa import authentication, download, es9p

with EuiccContext(apdu=my_reader, http=my_http, server_address="smdp.example.com") as ctx:
    ctx.session.b64_euicc_challenge = b64_challenge
    ctx.session.b64_euicc_info_1 = b64_info1
    es9p.initiate_authentication(ctx)
    authentication.authenticate_server(ctx, "MATCHING-ID", None)
    es9p.authenticate_client(ctx)
    download.prepare_download(ctx, None)   # pass the confirmation code if the server asks for one
    es9p.get_bound_profile_package(ctx)
    download.load_bound_profile_package(ctx)
    ctx.http_cleanup()
```

If the card rejects the package, `load_bound_profile_package` raises
`rsplpa.download.BppLoadError`. Its `bpp_command_id` and `error_reason`
attributes say where and why the card refused.

A failed server exchange raises `rsplpa.es9p.Es9pError`. The reported status
is on the exception's `status` and in `ctx.http_status`. When the server gives
no message, the message is filled in from `rsplpa.es9p_errors.error_message`.

`es9p.cancel_session(ctx)` sends the CancelSession response stored in
`ctx.session.b64_cancel_session_response` to the server.

## Notifications

```python
from rsplpa import notifications, es9p

for meta in notifications.list_notification(ctx):
    pending = notifications.retrieve_notifications_list(ctx, meta.seq_number)
    ctx.server_address = pending.notification_address
    es9p.handle_notification(ctx, pending.b64_pending_notification)
    notifications.remove_notification_from_list(ctx, meta.seq_number)
```

## Debugging

Set `LIBEUICC_DEBUG_APDU` to print every APDU sent and received to stderr.
Set `LIBEUICC_DEBUG_HTTP` to do the same for every HTTP exchange.

## What the package does not do

- It does not list, enable, disable or delete profiles. It does not read the
  EID, set nicknames or reset the eUICC memory.
- It does not parse the profile metadata that `authenticate_client` returns;
  the metadata is kept as base64 in `PrepareDownloadParam.b64_profile_metadata`.
- It does not send the GetEuiccChallenge, GetEuiccInfo1 or CancelSession
  commands to the card. Obtain those values by other means and store them in
  `ctx.session` before the server steps that need them.
- It has no command-line program. It is a library only.

## Tests

```
pip install rsplpa[test]
pytest
```