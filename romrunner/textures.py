"""
N64 high-resolution texture packs.

A pack ships as a read-only EROFS image in a `hires_texture` folder next to
the ROM archive. It is mounted over Mupen64Plus-Next's texture directory for
the duration of the launch, with a kernel loop mount when sudo can be used
without a password, otherwise through erofsfuse.
"""

import logging
import os
import shutil
import subprocess
from typing import Any, Callable, Dict, List, Optional

from .errors import MountFailure
from .models import MountState, MountTarget
from .settings import extensions, tool
from .utils import expand_path, first_success

log = logging.getLogger(__name__)


class TexturePackMounter:
    """Finds, redirects and mounts a texture pack image"""

    def __init__(self, settings: Dict[str, Any], cache_dir: str, runner: Optional[Callable] = None):
        tex = settings.get("textures", {})
        self.dir_name = tex.get("dir_name", "hires_texture")
        self.image_extensions = extensions(tex.get("image_extensions"))
        self.emulator_roots: List[str] = list(tex.get("emulator_roots", []))
        self.mount_subdir = tex.get("mount_subdir", "")
        self.cache_subdir = tex.get("cache_subdir", "")
        self.redirect_target = os.path.join(cache_dir, tex.get("redirect_dir", "mupen64plus_cache"))

        self.sudo = tool(settings, "sudo")
        self.mount_cmd = tool(settings, "mount")
        self.umount_cmd = tool(settings, "umount")
        self.erofsfuse = tool(settings, "erofsfuse")
        self.fusermount = tool(settings, "fusermount")

        self._run = runner or subprocess.run
        self._privileged: Optional[bool] = None

    # ── discovery ────────────────────────────────────────────

    def find_image(self, source_dir: str) -> Optional[str]:
        """First texture image in `<source_dir>/hires_texture`, if any."""
        tex_dir = os.path.join(source_dir, self.dir_name)
        if not os.path.isdir(tex_dir):
            return None
        for name in sorted(os.listdir(tex_dir)):
            path = os.path.join(tex_dir, name)
            if os.path.splitext(name)[1].lower() in self.image_extensions and os.path.isfile(path):
                return path
        return None

    def find_config_root(self) -> Optional[str]:
        """RetroArch configuration root: flatpak install first, then native."""
        found = first_success(
            (root, lambda root=root: expand_path(root) if os.path.isdir(expand_path(root)) else None)
            for root in self.emulator_roots
        )
        return found[1] if found else None

    # ── cache redirect ───────────────────────────────────────

    def redirect_cache(self, config_root: str) -> str:
        """
        Point the emulator's texture cache at the runner's temp area.

        Must run before mounting: the emulator fills this cache from the
        mounted pack.
        """
        link = os.path.join(config_root, self.cache_subdir)
        target = self.redirect_target
        os.makedirs(target, exist_ok=True)
        os.makedirs(os.path.dirname(link), exist_ok=True)

        if os.path.islink(link):
            if os.readlink(link) == target:
                return link
            os.unlink(link)
        elif os.path.isdir(link):
            shutil.rmtree(link)
        elif os.path.lexists(link):
            os.remove(link)

        os.symlink(target, link)
        log.info("Texture cache redirected: %s -> %s", link, target)
        return link

    # ── privileges ───────────────────────────────────────────

    def privileged_available(self) -> bool:
        """Whether privileged commands can run without prompting; probed once."""
        if self._privileged is None:
            if os.geteuid() == 0:
                self._privileged = True
            elif shutil.which(self.sudo) is None:
                self._privileged = False
            else:
                self._privileged = self._call([self.sudo, "-n", "true"])
            log.debug("Privileged mount available: %s", self._privileged)
        return self._privileged

    def _privileged_cmd(self, args: List[str]) -> List[str]:
        if os.geteuid() == 0:
            return args
        return [self.sudo, "-n", *args]

    def _call(self, cmd: List[str]) -> bool:
        try:
            proc = self._run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL)
        except OSError as exc:
            log.debug("%s failed to start: %s", cmd[0], exc)
            return False
        return proc.returncode == 0

    # ── mounting ─────────────────────────────────────────────

    def unmount_existing(self, mount_point: str) -> bool:
        """Unmount whatever is at `mount_point`; warns but never raises."""
        if not os.path.ismount(mount_point):
            return True
        log.info("Unmounting previous texture pack at %s", mount_point)
        attempts = []
        if self.privileged_available():
            attempts.append(("umount", lambda: self._call(self._privileged_cmd([self.umount_cmd, mount_point]))))
        attempts.append(("fusermount", lambda: self._call([self.fusermount, "-u", mount_point])))
        if first_success(attempts) is None:
            log.warning("Could not unmount %s", mount_point)
            return False
        return True

    def _mount_kernel(self, target: MountTarget) -> bool:
        return self._call(self._privileged_cmd([
            self.mount_cmd, "-t", "erofs", "-o", "loop,ro", target.image_path, target.mount_point,
        ]))

    def _mount_fuse(self, target: MountTarget) -> bool:
        if shutil.which(self.erofsfuse) is None:
            log.warning("%s is not installed, user-space mount unavailable", self.erofsfuse)
            return False
        return self._call([self.erofsfuse, target.image_path, target.mount_point])

    def mount(self, target: MountTarget) -> MountTarget:
        """
        Mount the image, kernel driver first when privileged, then FUSE.

        Raises:
            MountFailure: every strategy failed
        """
        os.makedirs(target.mount_point, exist_ok=True)
        attempts = []
        if self.privileged_available():
            attempts.append((MountState.MOUNTED_KERNEL, lambda: self._mount_kernel(target)))
        attempts.append((MountState.MOUNTED_FUSE, lambda: self._mount_fuse(target)))

        found = first_success(attempts)
        if found is None:
            target.state = MountState.FAILED
            log.error("Failed to mount texture pack %s", target.image_path)
            raise MountFailure(f"All mount strategies failed for {target.image_path}")
        target.state = found[0]
        log.info("Texture pack mounted at %s (%s)", target.mount_point,
                 "kernel" if target.state is MountState.MOUNTED_KERNEL else "fuse")
        return target

    def prepare(self, source_dir: str) -> Optional[MountTarget]:
        """
        Mount the texture pack found next to the ROM, if there is one.

        Returns None when no pack is present or no emulator config exists.

        Raises:
            MountFailure: a pack was found but could not be mounted
        """
        image = self.find_image(source_dir)
        if image is None:
            log.debug("No texture pack next to %s", source_dir)
            return None

        root = self.find_config_root()
        if root is None:
            log.warning("No RetroArch configuration directory found, skipping texture pack")
            return None

        log.info("Found texture pack: %s", image)
        self.redirect_cache(root)
        target = MountTarget(image_path=image, mount_point=os.path.join(root, self.mount_subdir))
        self.unmount_existing(target.mount_point)
        return self.mount(target)
