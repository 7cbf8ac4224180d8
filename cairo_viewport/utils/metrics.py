"""Image similarity metrics for reference-image regression checks.

Provides:
    - ssim: Structural Similarity Index (Gaussian-windowed, torch conv2d)
    - similarity_score: SSIM of two uint8 buffers, clamped to [0, 1]
    - difference_map: per-pixel absolute difference for failure inspection

Used by:
    - ImageComparator: pass/fail score against a reference PNG
    - Tests: known-value checks on synthetic images

ssim operates on torch tensors (C, H, W) or (B, C, H, W) in [0, max_val].
similarity_score/difference_map take numpy uint8 arrays (H, W) or (H, W, C).

Metric choice: SSIM (Wang et al. 2004) with an 11x11 Gaussian window,
sigma 1.5, K1 = 0.01, K2 = 0.03, zero padding at the borders. Computed in
float64 so byte-identical buffers score exactly 1.0. Anti-aliasing noise on
edges moves the score by well under a percent; a color or geometry change
moves it by several percent.
"""

import numpy as np
import torch
import torch.nn.functional as F


def _gaussian_window(window_size: int, sigma: float, channels: int, like: torch.Tensor) -> torch.Tensor:
    """Normalized 2D Gaussian kernel, shape (C, 1, window_size, window_size)."""
    coords = torch.arange(window_size, dtype=like.dtype, device=like.device) - (window_size // 2)
    gauss = torch.exp(-coords ** 2 / (2 * sigma ** 2))
    gauss = gauss / gauss.sum()
    kernel_2d = gauss.unsqueeze(0) * gauss.unsqueeze(1)
    return kernel_2d.expand(channels, 1, window_size, window_size).contiguous()


def ssim(
    img1: torch.Tensor,
    img2: torch.Tensor,
    window_size: int = 11,
    sigma: float = 1.5,
    k1: float = 0.01,
    k2: float = 0.03,
    max_val: float = 1.0
) -> torch.Tensor:
    """Compute Structural Similarity Index (SSIM).

    Parameters
    ----------
    img1 : torch.Tensor
        First image, shape (C, H, W) or (B, C, H, W), range [0, max_val]
    img2 : torch.Tensor
        Second image, same shape as img1
    window_size : int
        Gaussian window size (odd), default 11
    sigma : float
        Gaussian standard deviation, default 1.5
    k1, k2 : float
        Stability constants, defaults 0.01, 0.03
    max_val : float
        Maximum pixel value, default 1.0

    Returns
    -------
    torch.Tensor
        Mean SSIM in [-1, 1], scalar. 1.0 = identical.

    Raises
    ------
    ValueError
        If shapes differ or window_size is even

    Notes
    -----
    Computes SSIM per channel (grouped convolution) and averages.

    References
    ----------
    Wang et al., "Image Quality Assessment: From Error Visibility to
    Structural Similarity", IEEE TIP 2004.
    """
    if img1.shape != img2.shape:
        raise ValueError(f"SSIM inputs must have equal shapes, got {tuple(img1.shape)} and {tuple(img2.shape)}")
    if window_size % 2 != 1:
        raise ValueError(f"window_size must be odd, got {window_size}")

    if img1.ndim == 3:
        img1 = img1.unsqueeze(0)
        img2 = img2.unsqueeze(0)

    channels = img1.shape[1]
    window = _gaussian_window(window_size, sigma, channels, img1)
    pad = window_size // 2

    c1 = (k1 * max_val) ** 2
    c2 = (k2 * max_val) ** 2

    mu1 = F.conv2d(img1, window, padding=pad, groups=channels)
    mu2 = F.conv2d(img2, window, padding=pad, groups=channels)

    mu1_sq = mu1 ** 2
    mu2_sq = mu2 ** 2
    mu1_mu2 = mu1 * mu2

    sigma1_sq = F.conv2d(img1 * img1, window, padding=pad, groups=channels) - mu1_sq
    sigma2_sq = F.conv2d(img2 * img2, window, padding=pad, groups=channels) - mu2_sq
    sigma12 = F.conv2d(img1 * img2, window, padding=pad, groups=channels) - mu1_mu2

    ssim_map = ((2 * mu1_mu2 + c1) * (2 * sigma12 + c2)) / \
               ((mu1_sq + mu2_sq + c1) * (sigma1_sq + sigma2_sq + c2))

    return ssim_map.mean()


def _to_tensor(img: np.ndarray) -> torch.Tensor:
    """uint8 (H, W) or (H, W, C) → float64 (C, H, W) in [0, 1]."""
    arr = np.asarray(img)
    if arr.ndim == 2:
        arr = arr[:, :, None]
    if arr.ndim != 3:
        raise ValueError(f"Expected image of shape (H, W) or (H, W, C), got {arr.shape}")
    t = torch.from_numpy(np.ascontiguousarray(arr, dtype=np.float64) / 255.0)
    return t.permute(2, 0, 1)


def similarity_score(
    img1: np.ndarray,
    img2: np.ndarray,
    window_size: int = 11,
    sigma: float = 1.5
) -> float:
    """Structural similarity of two 8-bit images as a float in [0, 1].

    Parameters
    ----------
    img1, img2 : np.ndarray
        uint8 images of identical shape, (H, W) or (H, W, C)
    window_size : int
        Gaussian window size (odd), default 11
    sigma : float
        Gaussian standard deviation, default 1.5

    Returns
    -------
    float
        Mean SSIM clamped to [0, 1]; exactly 1.0 for identical buffers

    Raises
    ------
    ValueError
        If the shapes differ

    Examples
    --------
    >>> a = np.full((32, 32), 255, dtype=np.uint8)
    >>> similarity_score(a, a)
    1.0
    """
    if img1.shape != img2.shape:
        raise ValueError(f"Images must have equal shapes, got {img1.shape} and {img2.shape}")
    if np.array_equal(img1, img2):
        return 1.0

    with torch.no_grad():
        value = ssim(_to_tensor(img1), _to_tensor(img2), window_size=window_size, sigma=sigma)
    return float(min(1.0, max(0.0, value.item())))


def difference_map(img1: np.ndarray, img2: np.ndarray, amplify: float = 4.0) -> np.ndarray:
    """Per-pixel absolute difference, amplified for visibility.

    Parameters
    ----------
    img1, img2 : np.ndarray
        uint8 images of identical shape, (H, W) or (H, W, C)
    amplify : float
        Gain applied to the difference before clipping, default 4.0

    Returns
    -------
    np.ndarray
        uint8 (H, W) map; 0 where pixels agree. Channels are reduced by max.
    """
    if img1.shape != img2.shape:
        raise ValueError(f"Images must have equal shapes, got {img1.shape} and {img2.shape}")
    diff = np.abs(img1.astype(np.int16) - img2.astype(np.int16))
    if diff.ndim == 3:
        diff = diff.max(axis=2)
    return np.clip(diff * amplify, 0, 255).astype(np.uint8)
