import logging

from makesnapshot.client import VRAClient

logger = logging.getLogger(__name__)


def make_snapshot(config, options, client=None):
    """
    Create the snapshot of a virtual machine.

    Runs the request chain step by step: bearer token, virtual machine
    resource id, snapshot action id, action template, snapshot request and
    request status polling. Steps 5 and 6 are skipped on a dry run. Any
    failure raises a VRAError subclass and stops the chain.

    :param config: VRAConfig with credentials and connection settings
    :param options: RunOptions for this invocation
    :param client: Optional VRAClient, built from config when omitted
    :return: Dict with 'resource_id', 'action_id', 'status_url' and 'state'
    """
    if client is None:
        client = VRAClient(config.base_url, verify_ssl=config.verify_ssl, timeout=config.timeout)
    machine = options.machine_name
    max_wait = options.max_wait if options.max_wait is not None else config.max_wait

    logger.info(f'Creating snapshot of virtual machine "{machine}" for tenant "{config.tenant}"')

    logger.info("Step 1 - Get bearer token")
    token = client.authenticate(config.username, config.password, config.tenant, config.domain)

    logger.info(f"Step 2 - Get virtual machine resource ID for {machine}")
    resource_id = client.find_virtual_machine(token, machine, ignore_case=options.ignore_case)

    logger.info(f"Step 3 - Get snapshot resource action ID for {machine}")
    action_id = client.find_snapshot_action(token, resource_id)

    logger.info("Step 4 - Get resource action template")
    client.get_action_template(token, resource_id, action_id)

    result = {'resource_id': resource_id, 'action_id': action_id, 'status_url': None, 'state': None}
    if options.dry_run:
        logger.info("Step 5 - Skipped because of dry-run")
        logger.info("Step 6 - Skipped because of dry-run")
        logger.info("Bye from makeSnapshot")
        return result

    logger.info(f"Step 5 - Send snapshot request for {machine}")
    result['status_url'] = client.submit_snapshot_request(
        token, resource_id, action_id, config.tenant, keep_existing=options.keep_existing)

    logger.info("Step 6 - Get snapshot request status...")
    result['state'] = client.poll_request_status(token, result['status_url'], max_wait=max_wait)

    logger.info("Bye from makeSnapshot")
    return result
