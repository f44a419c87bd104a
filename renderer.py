import pygame

from transitions import Pose


def fit_size(img_size: tuple[int, int], screen_size: tuple[int, int], margin: float = 0.85) -> tuple[int, int]:
    """Largest size that keeps the aspect ratio inside `margin` of the screen."""
    vw, vh = img_size
    sw, sh = screen_size
    if not vw or not vh:
        return 0, 0
    scale = min(sw * margin / vw, sh * margin / vh)
    return max(1, int(vw * scale)), max(1, int(vh * scale))


def render_slide(screen: pygame.Surface, image: pygame.Surface, pose: Pose) -> None:
    """
    Letter-/pillar-box `image` onto `screen`, then apply the transition
    pose (offset from centre, rotation, scale, opacity).
    """
    if pose.alpha <= 0.0 or pose.scale <= 0.0:
        return
    sw, sh = screen.get_size()
    w, h   = fit_size(image.get_size(), (sw, sh))
    w, h   = max(1, int(w * pose.scale)), max(1, int(h * pose.scale))

    surf = pygame.transform.smoothscale(image, (w, h))
    if pose.rotation:
        surf = pygame.transform.rotate(surf, -pose.rotation)
    if pose.alpha < 1.0:
        surf.set_alpha(int(255 * pose.alpha))

    x = (sw - surf.get_width()) // 2 + int(pose.x)
    y = (sh - surf.get_height()) // 2 + int(pose.y)
    screen.blit(surf, (x, y))
