import random

from rosapilot.exceptions import RegionError
from rosapilot.providers.rosa.rosa_cli import RosaCli
from rosapilot.schemas import CloudRegion


class RegionSelector:
    def __init__(self, rosa: RosaCli) -> None:
        self._rosa = rosa

    async def list_regions(self, hosted_cp: bool = False, multi_az: bool = False) -> list[CloudRegion]:
        args = ['list', 'regions', '--output', 'json']

        if hosted_cp:
            args.append('--hosted-cp')

        if multi_az:
            args.append('--multi-az')

        return await self._rosa.run_json(list[CloudRegion], *args)

    async def region_check(self, region: str, hosted_cp: bool, multi_az: bool) -> None:
        regions = await self.list_regions(hosted_cp=hosted_cp, multi_az=multi_az)

        for candidate in regions:
            if candidate.id != region:
                continue

            if not candidate.enabled:
                raise RegionError(region, 'is disabled')

            return

        raise RegionError(region, f'is not available for {hosted_cp=}, {multi_az=}')

    async def select_random_region(self) -> str:
        enabled = [region.id for region in await self.list_regions() if region.enabled]

        if not enabled:
            raise RegionError('random', 'selection failed, no enabled regions found')

        random.shuffle(enabled)

        return enabled[0]
